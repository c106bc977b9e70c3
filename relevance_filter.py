"""LLM relevance screen over paper titles, backed by a durable decision cache."""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from batch_runner import TaskFailure, run_concurrent
from llm_client import CompletionClient
from models import ListingItem
from store import RelevanceCache

DEFAULT_BATCH_SIZE = 40
DEFAULT_CONCURRENCY = 5
FILTER_MAX_TOKENS = 200

# Replies meaning "no title in this batch is relevant".
_NONE_SENTINELS: frozenset[str] = frozenset({"无", "none", "无相关论文"})
_INDEX_RE = re.compile(r"\d+")

LOGGER = logging.getLogger(__name__)

FILTER_SYSTEM_PROMPT = """你是一个机器人学论文筛选助手。你需要判断每篇论文是否与以下研究方向相关：
- VLA (Vision-Language-Action) 模型
- 机器人操控 (manipulation, grasping, dexterous hand)
- 全身控制 (whole-body control, locomotion + manipulation)
- 机器人策略学习 (imitation learning, reinforcement learning for robotics)
- 具身智能 (embodied AI, embodied agent)
- 机器人感知用于操控 (tactile sensing, pose estimation for manipulation)

不相关的方向包括：纯自动驾驶、纯SLAM/建图、纯NLP、纯计算机视觉（无机器人应用）、纯理论优化、医疗影像、无人机路径规划等。

对于每篇论文，只输出序号。只输出相关的论文序号，用逗号分隔，例如: 1,3,5,8
如果没有相关论文则输出: 无"""


@dataclass(slots=True)
class FilterResult:
    kept: list[ListingItem] = field(default_factory=list)
    rejected: list[ListingItem] = field(default_factory=list)


def parse_selection(reply: str | None, batch_len: int) -> list[int] | None:
    """Map a reply to 0-based indices into the batch.

    Returns None when the reply is missing or unparseable (the caller keeps
    the whole batch), and an empty list for an explicit "none" reply.
    """
    if reply is None:
        return None
    text = reply.strip()
    if text.lower() in _NONE_SENTINELS:
        return []

    numbers = _INDEX_RE.findall(text)
    if not numbers:
        return None

    selected: list[int] = []
    for raw in numbers:
        index = int(raw) - 1
        if 0 <= index < batch_len and index not in selected:
            selected.append(index)
    return selected


def build_title_list(batch: Sequence[ListingItem]) -> str:
    return "\n".join(f"{idx}. {item.title}" for idx, item in enumerate(batch, start=1))


async def filter_by_relevance(
    items: Sequence[ListingItem],
    client: CompletionClient | None,
    cache: RelevanceCache | None = None,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> FilterResult:
    """Partition ``items`` into kept and rejected, preserving input order.

    Items with a cached decision are not sent to the model. Without a client
    every uncached item is kept. A failed batch keeps all of its items.
    """
    decisions: dict[int, bool] = {}
    pending: list[int] = []
    for position, item in enumerate(items):
        cached = cache.decision_for(item.url) if cache is not None else None
        if cached is None:
            pending.append(position)
        else:
            decisions[position] = cached

    if pending and client is None:
        LOGGER.info("Filter: LLM not configured, keeping all %s new papers", len(pending))
        for position in pending:
            decisions[position] = True
        _record(cache, items, pending, decisions)
    elif pending:
        batches = [pending[i:i + batch_size] for i in range(0, len(pending), batch_size)]
        total = len(batches)
        completed = 0

        def make_task(batch_no: int, positions: list[int]) -> Callable[[], Awaitable[list[int]]]:
            async def task() -> list[int]:
                nonlocal completed
                batch = [items[p] for p in positions]
                reply = await client.complete(
                    FILTER_SYSTEM_PROMPT,
                    f"以下是待筛选的论文标题列表：\n{build_title_list(batch)}",
                    FILTER_MAX_TOKENS,
                )
                selection = parse_selection(reply, len(batch))
                completed += 1
                pct = completed * 100 // total
                if selection is None:
                    LOGGER.warning(
                        "  [Filter %s/%s %s%%] batch %s: LLM failed, keeping all %s",
                        completed, total, pct, batch_no, len(batch),
                    )
                    selection = list(range(len(batch)))
                else:
                    LOGGER.info(
                        "  [Filter %s/%s %s%%] batch %s -> %s kept",
                        completed, total, pct, batch_no, len(selection),
                    )
                chosen = set(selection)
                for offset, position in enumerate(positions):
                    decisions[position] = offset in chosen
                _record(cache, items, positions, decisions)
                return selection
            return task

        LOGGER.info("Starting %s filter batches with concurrency=%s", total, concurrency)
        tasks = [make_task(n, positions) for n, positions in enumerate(batches, start=1)]
        outcomes = await run_concurrent(tasks, concurrency)
        for positions, outcome in zip(batches, outcomes):
            if isinstance(outcome, TaskFailure):
                for position in positions:
                    decisions.setdefault(position, True)
                _record(cache, items, positions, decisions)

    result = FilterResult()
    for position, item in enumerate(items):
        (result.kept if decisions.get(position, True) else result.rejected).append(item)
    return result


def _record(
    cache: RelevanceCache | None,
    items: Sequence[ListingItem],
    positions: Sequence[int],
    decisions: dict[int, bool],
) -> None:
    if cache is None:
        return
    for position in positions:
        cache.record(items[position].url, decisions[position])
    cache.save()
