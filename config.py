"""Runtime configuration, read from the environment once at process start."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

SOURCE_URL = "https://jiangranlv.github.io/robotics_arXiv_daily/"

_DEFAULT_MAX_ITEMS = 60
_TRUTHY = {"1", "true", "yes"}

# OpenAI-compatible chat completion endpoints per provider name.
PROVIDER_BASE_URLS: dict[str, str | None] = {
    "dashscope": "https://dashscope.aliyuncs.com/compatible-mode/v1",
    "deepseek": "https://api.deepseek.com",
    "openai": None,
}


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable pipeline settings shared by every component."""

    source_url: str = SOURCE_URL
    data_dir: Path = Path("data")
    pages_dir: Path = Path("papers")
    max_items: int = _DEFAULT_MAX_ITEMS
    batch_size: int | None = None
    llm_enable: bool = True
    llm_provider: str = "dashscope"
    llm_model: str = "qwen-max"
    llm_api_key: str = ""
    llm_base_url: str | None = None
    force_input: str = ""
    force_add_single: bool = False
    filter_batch_size: int = 40
    filter_concurrency: int = 5
    summary_concurrency: int = 16

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        provider = env.get("LLM_PROVIDER", "dashscope").strip()
        return cls(
            data_dir=Path(env.get("DATA_DIR", "data")),
            pages_dir=Path(env.get("PAGES_DIR", "papers")),
            max_items=_as_int(env.get("MAX_ITEMS"), _DEFAULT_MAX_ITEMS),
            batch_size=_as_int(env.get("BATCH_SIZE"), None) or None,
            llm_enable=env.get("LLM_ENABLE", "true").strip() != "false",
            llm_provider=provider,
            llm_model=env.get("LLM_MODEL", "qwen-max").strip(),
            llm_api_key=env.get("LLM_API_KEY", "").strip(),
            llm_base_url=env.get("LLM_BASE_URL", "").strip() or PROVIDER_BASE_URLS.get(provider.lower()),
            force_input=env.get("FORCE_ARXIV_INPUT", "").strip(),
            force_add_single=env.get("FORCE_ADD_SINGLE", "").strip().lower() in _TRUTHY,
        )

    @property
    def llm_configured(self) -> bool:
        return self.llm_enable and bool(self.llm_provider) and bool(self.llm_api_key)

    @property
    def output_path(self) -> Path:
        return self.data_dir / "papers.json"

    @property
    def index_path(self) -> Path:
        return self.data_dir / "papers-index.json"

    @property
    def cache_path(self) -> Path:
        return self.data_dir / "filter_cache.json"


def _as_int(raw: str | None, default: int | None) -> int | None:
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default
