"""Short and long paper summaries, with deterministic fallbacks."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from llm_client import CompletionClient
from models import ExtractedContent, PaperRecord

SHORT_CONTEXT_CHARS = 4000
LONG_CONTEXT_CHARS = 32000
SHORT_MAX_TOKENS = 300
LONG_MAX_TOKENS = 8000

# Stored in both summary fields when no full text could be extracted. It is
# distinct from the fallbacks below, which mean "LLM unavailable".
NO_PREVIEW_SENTINEL = "目标不存在html界面，获取失败……"

LOGGER = logging.getLogger(__name__)

SHORT_SYSTEM_PROMPT = (
    "你是机器人/AI论文助手。根据提供的论文标题和正文内容，用中文写一段精准的简短总结，100-160字。\n"
    "要求：\n"
    "1. 准确描述论文要解决的核心问题\n"
    "2. 提炼关键技术方法的名称和要点\n"
    "3. 给出核心实验结论或性能提升数据\n"
    "不要编造论文中没有的内容。语言简洁有力。"
)

LONG_SYSTEM_PROMPT = """你是一位资深的机器人/AI领域论文解读专家。你的任务是根据提供的论文全文内容，用中文撰写一篇详尽、高质量的论文解读，目标读者是对该领域有一定基础但没读过这篇论文的研究者。

严格要求：
- 直接从正文内容开始，禁止任何开场白、自我介绍或过渡语（如"好的"、"我将为您"、"作为专家"等）
- 第一行必须是 ## 研究背景与动机
- 所有内容必须基于论文原文，绝对不得编造任何方法名、数据或结论
- 引用论文图片时使用格式: 先放图片 ![描述](图片URL)，然后另起一行用 > 引用块写图注说明，例如：
  ![方法框架](https://...)
  > **图1**：方法整体框架。左侧为...，右侧为...
- 图片与图注应作为独立段落，前后各空一行，与正文明确分隔
- 不要遗漏任何重要的技术细节

请严格按照以下结构组织，总字数 800-1500 字：

## 研究背景与动机
- 该领域目前主流方法是什么？存在哪些关键局限性？
- 本文针对哪个具体痛点，提出了什么新视角？
- 用 1-2 句话概括本文的核心思路

## 方法详解
- 整体框架/pipeline 是什么？各阶段的输入输出是什么？
- 核心模块分别是什么？每个模块的具体作用和技术细节（网络结构、损失函数、优化策略等）
- 与现有方法相比，创新点具体体现在哪里？
- **必须插入 pipeline/框架总览图**（通常是论文中的第一张或第二张图）

## 实验与结果
- 明确列出使用了哪些 benchmark/数据集/实验平台
- 对比了哪些 baseline 方法
- 用文字总结关键实验结果（包括具体数值，如成功率、准确率、提升百分比等）
- 插入实验结果相关的图表，每张图后附 1-2 句文字说明该图展示的要点
- 如果有消融实验，总结每个组件的贡献

## 总结与启发
- 概括本文 2-3 个核心贡献
- 指出论文自身提到的局限性（如果有）
- 对后续研究的启示"""


def fallback_summary(title: str) -> str:
    return f'论文标题为 "{title}"，本文关注机器人相关问题，给出方法与实验结果概述。'


def fallback_detailed(title: str) -> str:
    return (
        f'## 概述\n\n本文题为 "{title}"，聚焦于机器人领域的关键挑战。\n\n'
        "## 方法\n\n文章提出了一种新颖的技术方案。\n\n"
        "## 实验与结论\n\n实验表明该方法在基准测试中取得了有竞争力的结果。"
    )


async def generate_short_summary(client: CompletionClient | None, title: str, text: str) -> str:
    if client is None:
        return fallback_summary(title)

    context = text[:SHORT_CONTEXT_CHARS]
    user_prompt = f"论文标题: {title}\n\n论文正文节选:\n{context}" if context else f"论文标题: {title}"
    result = await client.complete(SHORT_SYSTEM_PROMPT, user_prompt, SHORT_MAX_TOKENS)
    return result or fallback_summary(title)


async def generate_long_summary(
    client: CompletionClient | None,
    title: str,
    text: str,
    image_urls: Sequence[str] = (),
) -> str:
    if client is None:
        return fallback_detailed(title)

    context = text[:LONG_CONTEXT_CHARS]
    if context:
        images = "\n".join(f"- 图{i}: {url}" for i, url in enumerate(image_urls, start=1))
        user_prompt = f"论文标题: {title}\n\n论文正文:\n{context}\n\n论文图片链接:\n{images}"
    else:
        user_prompt = f"论文标题: {title}"
    result = await client.complete(LONG_SYSTEM_PROMPT, user_prompt, LONG_MAX_TOKENS, reasoning=True)
    return result or fallback_detailed(title)


async def summarize_paper(
    client: CompletionClient | None,
    title: str,
    content: ExtractedContent,
    previous: PaperRecord | None = None,
) -> tuple[str, str]:
    """Return ``(short, long)`` summaries for one paper.

    Non-empty summaries on ``previous`` are reused as-is.
    """
    if content.empty:
        LOGGER.info("No full text for %r, marking as no preview", title)
        return NO_PREVIEW_SENTINEL, NO_PREVIEW_SENTINEL

    short = previous.short_summary if previous is not None and previous.short_summary else None
    long = previous.long_summary if previous is not None and previous.long_summary else None
    if short is None:
        short = await generate_short_summary(client, title, content.text)
    if long is None:
        long = await generate_long_summary(client, title, content.text, content.image_urls)
    return short, long
