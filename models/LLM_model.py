import logging
import time
from abc import ABC, abstractmethod

import backoff
from google import genai

from core.config import get_settings
from tools.logConfig import ERROR_ICON, SUCCESS_ICON, WAIT_ICON

logger = logging.getLogger('advisor')


class LLMClient(ABC):
    """LLM 客户端抽象基类"""

    @abstractmethod
    def get_completion(self, messages, **kwargs):
        """获取模型回答"""
        pass


class GeminiClient(LLMClient):
    """Google Gemini API 客户端"""

    def __init__(self, api_key=None, model=None):
        settings = get_settings()
        self.api_key = api_key or settings.gemini_api_key
        self.model = model or settings.gemini_model

        if not self.api_key:
            logger.error(f"{ERROR_ICON} 未找到 GEMINI_API_KEY 配置")
            raise ValueError("GEMINI_API_KEY not configured")

        self.client = genai.Client(api_key=self.api_key)
        logger.info(f"{SUCCESS_ICON} Gemini 客户端初始化成功")

    @backoff.on_exception(
        backoff.expo,
        Exception,
        max_tries=3,
        max_time=60,
    )
    def generate_content_with_retry(self, contents, config=None):
        """带重试机制的内容生成函数"""
        try:
            logger.info(f"{WAIT_ICON} 正在调用 Gemini API...")
            logger.debug(f"请求内容: {contents}")

            response = self.client.models.generate_content(
                model=self.model,
                contents=contents,
                config=config
            )

            logger.info(f"{SUCCESS_ICON} API 调用成功")
            return response
        except Exception as e:
            error_msg = str(e)
            if "location" in error_msg.lower():
                logger.error(f"{ERROR_ICON} Gemini API 地理位置限制: {error_msg}")
            else:
                logger.error(f"{ERROR_ICON} API 调用失败: {error_msg}")
            raise

    def get_completion(self, messages, max_retries=2, initial_retry_delay=1, json_mode=False, **kwargs):
        """获取聊天完成结果，失败返回 None"""
        logger.info(f"{WAIT_ICON} 使用 Gemini 模型: {self.model}")

        # 转换消息格式
        prompt = ""
        system_instruction = None
        for message in messages:
            role = message["role"]
            content = message["content"]
            if role == "system":
                system_instruction = content
            elif role == "user":
                prompt += f"User: {content}\n"
            elif role == "assistant":
                prompt += f"Assistant: {content}\n"

        config = {}
        if system_instruction:
            config['system_instruction'] = system_instruction
        if json_mode:
            config['response_mime_type'] = 'application/json'

        for attempt in range(max_retries):
            try:
                response = self.generate_content_with_retry(contents=prompt.strip(), config=config)
                if response is not None and response.text:
                    logger.debug(f"API 原始响应: {response.text[:500]}")
                    return response.text
                logger.warning(f"{ERROR_ICON} 尝试 {attempt + 1}/{max_retries}: API 返回空值")
            except Exception as e:
                logger.error(f"{ERROR_ICON} 尝试 {attempt + 1}/{max_retries} 失败: {e}")

            if attempt < max_retries - 1:
                retry_delay = initial_retry_delay * (2 ** attempt)
                logger.info(f"{WAIT_ICON} 等待 {retry_delay} 秒后重试...")
                time.sleep(retry_delay)

        logger.error(f"{ERROR_ICON} 多次尝试后仍未获得回答")
        return None


def llm_chat(messages, model=None, api_key=None, json_mode=False):
    client = GeminiClient(api_key=api_key, model=model)
    return client.get_completion(messages, json_mode=json_mode)
