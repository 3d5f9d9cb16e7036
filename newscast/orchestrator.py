"""
Narration Orchestrator - Generation Pipeline

Runs the complete article-to-audio pipeline:
clean -> chunk -> synthesize (with retries) -> assemble audio -> build captions.

Features:
- Skips articles whose audio and caption files already exist (unless forced)
- Strictly sequential chunk synthesis within one article, since every
  chunk's caption offset depends on the measured duration of the ones before
- Jittered retry/backoff per chunk; an article that exhausts its retries is
  failed and its partial outputs are deleted
- Admission control across articles: at most ``concurrency`` jobs in flight
- A run-scoped reporter with per-outcome counts and progress
"""

import asyncio
import random
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set

from rich.progress import Progress, TaskID

from newscast.articles import Article
from newscast.audio import AudioAssembler, DurationProbe
from newscast.captions import CaptionBuilder, save_track
from newscast.chunker import Chunk, TextChunker
from newscast.clean_text import MarkdownCleaner
from newscast.errors import ArticleGenerationError
from newscast.synthesis import SynthesisResult, Synthesizer
from newscast.utils.config import config
from newscast.utils import logger


class GenerationOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class RetryPolicy:
    """How often a chunk is attempted and how long to wait in between."""

    max_attempts: int = 3
    base_delay: float = 2.0  # seconds
    jitter: float = 1.0  # seconds, uniform on top of base_delay

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay(self, rng: random.Random) -> float:
        return self.base_delay + rng.uniform(0, self.jitter)

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        return cls(
            max_attempts=int(config.get("synthesis", "max_attempts", default=3)),
            base_delay=float(config.get("synthesis", "backoff_base", default=2.0)),
            jitter=float(config.get("synthesis", "backoff_jitter", default=1.0)),
        )


@dataclass
class ArticleResult:
    """Outcome of one article job."""

    article_id: str
    outcome: GenerationOutcome
    chunks: int = 0
    cues: int = 0
    duration_ms: float = 0.0
    error: Optional[str] = None


@dataclass
class RunSummary:
    """Per-article results of one generation run."""

    results: List[ArticleResult] = field(default_factory=list)
    peak_in_flight: int = 0

    def _count(self, outcome: GenerationOutcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def succeeded(self) -> int:
        return self._count(GenerationOutcome.SUCCEEDED)

    @property
    def skipped(self) -> int:
        return self._count(GenerationOutcome.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(GenerationOutcome.FAILED)

    @property
    def failures(self) -> List[ArticleResult]:
        return [r for r in self.results if r.outcome is GenerationOutcome.FAILED]

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0


class RunReporter:
    """
    Progress and counters for a single generation run.

    Created per run and discarded afterwards; the only state shared between
    concurrent article jobs.
    """

    def __init__(self, total: int, progress: Optional[Progress] = None):
        self.total = total
        self.completed = 0
        self.in_flight = 0
        self.peak_in_flight = 0
        self.counts: Dict[GenerationOutcome, int] = {o: 0 for o in GenerationOutcome}
        self._results: List[ArticleResult] = []
        self._progress = progress
        self._task: Optional[TaskID] = None
        if progress is not None:
            self._task = progress.add_task("Generating audio", total=total)

    def job_started(self, article_id: str) -> None:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)

    def job_finished(self, result: ArticleResult) -> None:
        self.in_flight -= 1
        self.completed += 1
        self.counts[result.outcome] += 1
        self._results.append(result)

        if self._progress is not None and self._task is not None:
            self._progress.advance(self._task)
        if result.outcome is not GenerationOutcome.SKIPPED:
            logger.info(
                f"[{self.completed}/{self.total}] {result.outcome.value}",
                result.article_id,
            )

    def summary(self) -> RunSummary:
        return RunSummary(results=list(self._results), peak_in_flight=self.peak_in_flight)


class SynthesisOrchestrator:
    """
    Generates narration audio and captions for articles.

    Collaborators (synthesizer, duration probe) are injected; timing knobs
    default to the configuration file.
    """

    def __init__(
        self,
        synthesizer: Synthesizer,
        probe: DurationProbe,
        output_dir: Path,
        voice: Optional[str] = None,
        rate: Optional[str] = None,
        max_length: Optional[int] = None,
        concurrency: Optional[int] = None,
        retry: Optional[RetryPolicy] = None,
        chunk_pause: Optional[float] = None,
        cleaner: Optional[MarkdownCleaner] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            synthesizer: Speech synthesis backend
            probe: Audio duration probe
            output_dir: Directory receiving ``<id>.mp3`` and ``<id>.vtt``
            voice: Voice name (default from config)
            rate: edge-tts rate string (default from config)
            max_length: Maximum chunk length in code points
            concurrency: Maximum article jobs in flight
            retry: Retry policy for each chunk
            chunk_pause: Seconds to wait between chunks of one article
            cleaner: Markdown cleaner used to build narration text
            sleep: Awaitable sleep, injectable for tests
            rng: Random source for backoff jitter
        """
        self.synthesizer = synthesizer
        self.probe = probe
        self.output_dir = Path(output_dir)
        self.voice = voice or config.voice
        self.rate = rate or config.voice_rate
        self.chunker = TextChunker(max_length)
        self.concurrency = concurrency if concurrency is not None else config.concurrency
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        self.retry = retry or RetryPolicy.from_config()
        self.chunk_pause = (
            chunk_pause
            if chunk_pause is not None
            else float(config.get("synthesis", "chunk_pause", default=0.2))
        )
        self.cleaner = cleaner or MarkdownCleaner()
        self._sleep = sleep
        self._rng = rng or random.Random()

    def audio_path(self, article_id: str) -> Path:
        return self.output_dir / f"{article_id}.{config.audio_extension}"

    def captions_path(self, article_id: str) -> Path:
        return self.output_dir / f"{article_id}.{config.captions_extension}"

    def artifacts_exist(self, article: Article) -> bool:
        return self.audio_path(article.id).exists() and self.captions_path(article.id).exists()

    async def generate(self, article: Article, force: bool = False) -> ArticleResult:
        """
        Generate audio and captions for one article.

        Never raises for a failed article: the failure is logged, partial
        outputs are removed and a FAILED result is returned.

        Args:
            article: Article to narrate
            force: Regenerate even when both artifacts exist

        Returns:
            ArticleResult describing what happened
        """
        if not force and self.artifacts_exist(article):
            return ArticleResult(article.id, GenerationOutcome.SKIPPED)

        try:
            return await self._generate(article, force)
        except Exception as e:
            logger.error(f"Error during generation: {e}", article.id)
            self._remove_outputs(article.id)
            return ArticleResult(article.id, GenerationOutcome.FAILED, error=str(e))

    async def _generate(self, article: Article, force: bool) -> ArticleResult:
        text = article.narration_text(self.cleaner)
        chunks = self.chunker.split(text)
        if not chunks:
            logger.warning("Nothing to narrate", article.id)
            return ArticleResult(article.id, GenerationOutcome.SKIPPED)

        logger.info(
            "Starting audio generation..." + (" (forced)" if force else ""),
            article.id,
        )
        if len(chunks) > 1:
            logger.info(f"Text divided into {len(chunks)} segments.", article.id)

        assembler = AudioAssembler(self.audio_path(article.id), self.probe)
        builder = CaptionBuilder()
        assembler.open()

        for chunk in chunks:
            result = await self._synthesize_with_retry(article.id, chunk)
            offset, duration = await assembler.append(result.audio)

            if not result.has_timings:
                logger.warning(
                    f"No word timings for segment {chunk.index}; "
                    "its captions are skipped.",
                    article.id,
                )
            elif duration <= 0:
                # Unmeasured audio has no place on the caption timeline
                logger.warning(
                    f"Segment {chunk.index} has no measured duration; "
                    "its captions are skipped.",
                    article.id,
                )
            else:
                builder.add_chunk(result.word_timings, offset, duration)

            if chunk.index < len(chunks) - 1 and self.chunk_pause > 0:
                await self._sleep(self.chunk_pause)

        track = builder.build(duration_ms=assembler.total_ms)
        save_track(self.captions_path(article.id), track)

        logger.success(
            f"Audio and captions generated ({assembler.total_ms / 1000:.1f}s, "
            f"{len(track)} cues).",
            article.id,
        )
        return ArticleResult(
            article.id,
            GenerationOutcome.SUCCEEDED,
            chunks=len(chunks),
            cues=len(track),
            duration_ms=assembler.total_ms,
        )

    async def _synthesize_with_retry(self, article_id: str, chunk: Chunk) -> SynthesisResult:
        """Synthesize one chunk, retrying with jittered backoff."""
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.retry.max_attempts + 1):
            try:
                return await self.synthesizer.synthesize(chunk.text, self.voice, self.rate)
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Attempt {attempt} failed for segment {chunk.index}: {e}",
                    article_id,
                )
                if attempt < self.retry.max_attempts:
                    await self._sleep(self.retry.delay(self._rng))

        raise ArticleGenerationError(
            article_id,
            f"segment {chunk.index} failed after {self.retry.max_attempts} attempts",
            cause=last_error,
        ) from last_error

    def _remove_outputs(self, article_id: str) -> None:
        for path in (self.audio_path(article_id), self.captions_path(article_id)):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not delete {path.name}: {e}", article_id)

    async def run(
        self,
        articles: Iterable[Article],
        force: bool = False,
        progress: Optional[Progress] = None,
    ) -> RunSummary:
        """
        Generate every article with bounded concurrency.

        A job is admitted only while fewer than ``concurrency`` jobs are in
        flight; otherwise the loop waits for one to finish.

        Args:
            articles: Articles to process
            force: Regenerate existing artifacts
            progress: Optional rich progress bar to advance

        Returns:
            RunSummary with one result per article
        """
        articles = list(articles)
        reporter = RunReporter(total=len(articles), progress=progress)
        active: Set[asyncio.Task] = set()

        for article in articles:
            if len(active) >= self.concurrency:
                done, _ = await asyncio.wait(active, return_when=asyncio.FIRST_COMPLETED)
                active -= done

            active.add(asyncio.create_task(self._run_job(article, force, reporter)))

        if active:
            await asyncio.wait(active)

        return reporter.summary()

    async def _run_job(self, article: Article, force: bool, reporter: RunReporter) -> None:
        reporter.job_started(article.id)
        result = await self.generate(article, force)
        reporter.job_finished(result)
