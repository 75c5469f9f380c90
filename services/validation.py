"""
services/validation.py  手工录入校验

所有校验函数返回错误信息列表，空列表表示通过。
未通过校验的录入不会进入合并引擎。
"""

import re
from datetime import datetime
from typing import List

from schemas import HoldingIn

_BAD_CODE_CHARS = re.compile(r'[^0-9A-Za-z]')
_MAX_CODE_LEN = 12


def validate_code(code: str) -> List[str]:
    errors = []
    c = (code or "").strip()
    if not c:
        errors.append("代码不能为空")
        return errors
    if len(c) > _MAX_CODE_LEN:
        errors.append(f"代码 '{c}' 过长（最多 {_MAX_CODE_LEN} 个字符）")
    if _BAD_CODE_CHARS.search(c):
        errors.append(f"代码 '{c}' 含有非法字符，只允许字母和数字")
    return errors


def validate_entry(entry: HoldingIn) -> List[str]:
    errors = validate_code(entry.code)

    if entry.buy_price is None:
        errors.append("买入价不能为空")
    elif entry.buy_price < 0:
        errors.append("买入价不能为负数")

    if entry.quantity is None:
        errors.append("数量不能为空")
    elif entry.quantity < 0:
        errors.append("数量不能为负数")

    if entry.buy_date:
        try:
            datetime.strptime(entry.buy_date, "%Y-%m-%d")
        except ValueError:
            errors.append(f"'{entry.buy_date}' 不是有效日期（格式 YYYY-MM-DD）")

    return errors
