import pytest

from conftest import make_holding
from schemas import AssetType
from services.advisorService import AdvisorError, SmartAdvisor, build_prompt, parse_advice, unique_assets


def test_unique_assets_by_code_and_type():
    holdings = [make_holding("000001"), make_holding("000001", id="dup"),
                make_holding("000001", asset_type=AssetType.FUND)]
    assert len(unique_assets(holdings)) == 2


def test_build_prompt_lists_assets():
    prompt = build_prompt([make_holding("600519", buy_price=1600, current_price=1710, name="贵州茅台")])
    assert "Type: STOCK, Name: 贵州茅台, Code: 600519, Buy Price: 1600.0, Current Price: 1710.0" in prompt


def test_parse_advice_tolerates_surrounding_text():
    text = 'Here you go:\n[{"asset_name": "x", "asset_code": "1", "alternatives": []}]\nThanks'
    assert parse_advice(text)[0].asset_name == "x"


@pytest.mark.parametrize("text", ["no json", "[{]", '[{"asset_code": "1"}]'])
def test_parse_advice_errors(text):
    with pytest.raises(AdvisorError):
        parse_advice(text)


def test_empty_portfolio_skips_model_call():
    def fail(**kwargs):
        raise AssertionError("should not be called")

    assert SmartAdvisor(chat=fail).advise([]) == []


def test_empty_response_is_an_error():
    with pytest.raises(AdvisorError):
        SmartAdvisor(chat=lambda messages, json_mode: None).advise([make_holding("600519")])
