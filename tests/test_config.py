from pathlib import Path

from config import PROVIDER_BASE_URLS, SOURCE_URL, Settings


def test_defaults_from_empty_environment() -> None:
    settings = Settings.from_env({})

    assert settings.source_url == SOURCE_URL
    assert settings.max_items == 60
    assert settings.batch_size is None
    assert settings.llm_enable is True
    assert settings.llm_provider == "dashscope"
    assert settings.llm_base_url == PROVIDER_BASE_URLS["dashscope"]
    assert settings.llm_configured is False
    assert settings.output_path == Path("data/papers.json")
    assert settings.index_path == Path("data/papers-index.json")
    assert settings.cache_path == Path("data/filter_cache.json")


def test_environment_overrides() -> None:
    settings = Settings.from_env(
        {
            "MAX_ITEMS": "25",
            "BATCH_SIZE": "5",
            "LLM_PROVIDER": "deepseek",
            "LLM_MODEL": "deepseek-chat",
            "LLM_API_KEY": " secret ",
            "FORCE_ARXIV_INPUT": "2503.01078",
            "FORCE_ADD_SINGLE": "TRUE",
            "DATA_DIR": "/tmp/out",
        }
    )

    assert settings.max_items == 25
    assert settings.batch_size == 5
    assert settings.llm_model == "deepseek-chat"
    assert settings.llm_api_key == "secret"
    assert settings.llm_base_url == "https://api.deepseek.com"
    assert settings.llm_configured is True
    assert settings.force_input == "2503.01078"
    assert settings.force_add_single is True
    assert settings.output_path == Path("/tmp/out/papers.json")


def test_llm_disable_and_base_url_override() -> None:
    settings = Settings.from_env(
        {"LLM_ENABLE": "false", "LLM_API_KEY": "k", "LLM_PROVIDER": "custom", "LLM_BASE_URL": "https://llm.local/v1"}
    )
    assert settings.llm_configured is False
    assert settings.llm_base_url == "https://llm.local/v1"


def test_bad_integers_fall_back_to_defaults() -> None:
    settings = Settings.from_env({"MAX_ITEMS": "lots", "BATCH_SIZE": "0"})
    assert settings.max_items == 60
    assert settings.batch_size is None
