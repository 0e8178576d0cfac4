"""
Execution strategies for filefind.

Three strategies combine the walker and the predicate chain:

- SequentialStrategy evaluates each candidate as soon as the walker produces
  it, on the calling thread.
- ParallelStrategy walks on the calling thread and evaluates candidates on a
  fixed pool of worker threads fed through a bounded queue.
- LazyStrategy hands out a pull-based iterator that advances the walk only
  as far as the next match.

All three report the same set of matches for the same filesystem state. Only
the sequential and lazy strategies guarantee breadth-first report order.
"""

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Optional, Union

from ..errors import ConfigurationError
from ..models.config import FinderConfig, LimitsConfig, StrategyKind
from ..models.rules import RuleSet
from ..models.search_results import Candidate, FileMatch, SearchResults
from .fs_walker import FSWalker
from .predicates import PredicateChain


logger = logging.getLogger(__name__)

MatchCallback = Callable[[FileMatch], Any]

_SENTINEL = object()


def _to_match(candidate: Candidate) -> FileMatch:
    return FileMatch(path=candidate.path, depth=candidate.depth, metadata=candidate.metadata)


class BaseStrategy:
    """Common setup and bookkeeping for the strategies."""

    name = "base"

    def __init__(self, rules: RuleSet):
        self.rules = rules

    def run(self, callback: Optional[MatchCallback] = None) -> SearchResults:
        raise NotImplementedError

    def _start(self):
        """
        Compile the rules and check the roots before anything is reported.

        Raises:
            ConfigurationError: If the rules cannot be compiled
            FatalTraversalError: If a root does not exist
        """
        chain = PredicateChain(self.rules)
        walker = FSWalker(self.rules, chain)
        walker.check_roots()
        logger.info(f"Starting {self.name} search: {self.rules}")
        return chain, walker

    def _finish(self, results: SearchResults, walker: FSWalker, started: float) -> SearchResults:
        stats = walker.get_stats()
        results.total_scanned = stats['entries_scanned']
        results.directories_traversed = stats['directories_traversed']
        results.errors.extend(walker.errors)
        results.execution_time = time.perf_counter() - started
        logger.info(f"Finished {self.name} search: {results}")
        return results


class SequentialStrategy(BaseStrategy):
    """Walk and evaluate in lock-step on the calling thread."""

    name = StrategyKind.SEQUENTIAL.value

    def run(self, callback: Optional[MatchCallback] = None) -> SearchResults:
        """
        Run the search.

        Args:
            callback: Called with each match as soon as it is found. When
                given, matches are not stored in the results.

        Returns:
            SearchResults with matches in breadth-first order
        """
        started = time.perf_counter()
        chain, walker = self._start()
        results = SearchResults(rules=self.rules, strategy=self.name)

        for candidate in walker:
            if not chain.matches(candidate):
                continue

            match = _to_match(candidate)
            if callback is None:
                results.add_match(match)
            else:
                results.record(match)
                callback(match)

        return self._finish(results, walker, started)


class ParallelStrategy(BaseStrategy):
    """
    Walk on the calling thread, evaluate on a pool of worker threads.

    The walker alone owns the worklist and dedup set. Candidates whose
    basename passes the glob are put on a bounded queue; each worker drains
    the queue until it reads its sentinel and evaluates the full chain.
    Stored matches are appended under a lock. A callback runs on the worker
    threads and must be safe to call concurrently.
    """

    name = StrategyKind.PARALLEL.value

    def __init__(self, rules: RuleSet, workers: int = 4, queue_size: int = 1024):
        super().__init__(rules)
        self.workers = workers
        self.queue_size = queue_size

    def run(self, callback: Optional[MatchCallback] = None) -> SearchResults:
        """
        Run the search.

        With ``workers <= 1`` this behaves exactly like SequentialStrategy
        and no thread is created; the results still report ``"parallel"``.

        Returns:
            SearchResults holding the same matches as a sequential run, in
            no particular order
        """
        if self.workers <= 1:
            results = SequentialStrategy(self.rules).run(callback)
            results.strategy = self.name
            return results

        started = time.perf_counter()
        chain, walker = self._start()
        results = SearchResults(rules=self.rules, strategy=self.name)
        work: queue.Queue = queue.Queue(maxsize=self.queue_size)
        lock = threading.Lock()

        def evaluate(candidate: Candidate) -> None:
            if not chain.matches(candidate):
                return

            match = _to_match(candidate)
            with lock:
                if callback is None:
                    results.add_match(match)
                else:
                    results.record(match)
            if callback is not None:
                callback(match)

        def worker() -> int:
            evaluated = 0
            error: Optional[BaseException] = None
            while True:
                candidate = work.get()
                if candidate is _SENTINEL:
                    break
                # After a failure keep draining so the producer never blocks
                if error is not None:
                    continue
                try:
                    evaluate(candidate)
                    evaluated += 1
                except Exception as e:
                    logger.error(f"Worker failed on {candidate.path}: {e}")
                    error = e
            if error is not None:
                raise error
            return evaluated

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="filefind") as executor:
            futures = [executor.submit(worker) for _ in range(self.workers)]
            try:
                for candidate in walker:
                    if chain.matches_name(candidate.name):
                        work.put(candidate)
            finally:
                for _ in futures:
                    work.put(_SENTINEL)

            evaluated = 0
            for future in as_completed(futures):
                evaluated += future.result()

        logger.debug(f"Workers evaluated {evaluated} candidates")
        return self._finish(results, walker, started)


class LazyMatchIterator:
    """
    Pull-based iterator over the matches of a RuleSet.

    Each ``next`` call advances the walker only until the next match, keeping
    the worklist, dedup set and listing cursor between calls. The iterator is
    single-use and not safe for concurrent ``next`` calls.

    Attributes:
        last_match: Path of the most recent match returned
        match_count: Number of matches returned so far
    """

    def __init__(self, rules: RuleSet):
        """
        Raises:
            ConfigurationError: If the rules cannot be compiled
            FatalTraversalError: If a root does not exist
        """
        self.rules = rules
        self.chain = PredicateChain(rules)
        self.walker = FSWalker(rules, self.chain)
        self.walker.check_roots()
        self.last_match: Optional[str] = None
        self.match_count = 0

    def __iter__(self) -> 'LazyMatchIterator':
        return self

    def __next__(self) -> FileMatch:
        while True:
            candidate = self.walker.next_candidate()
            if candidate is None:
                raise StopIteration
            if self.chain.matches(candidate):
                match = _to_match(candidate)
                self.last_match = match.path
                self.match_count += 1
                return match

    def get_stats(self) -> Dict[str, int]:
        return self.walker.get_stats()


class LazyStrategy(BaseStrategy):
    """Expose the search as a fresh LazyMatchIterator per call."""

    name = StrategyKind.LAZY.value

    def iterate(self) -> LazyMatchIterator:
        return LazyMatchIterator(self.rules)

    def run(self, callback: Optional[MatchCallback] = None) -> SearchResults:
        """Drain a fresh iterator into SearchResults or the callback."""
        started = time.perf_counter()
        iterator = self.iterate()
        results = SearchResults(rules=self.rules, strategy=self.name)

        for match in iterator:
            if callback is None:
                results.add_match(match)
            else:
                results.record(match)
                callback(match)

        return self._finish(results, iterator.walker, started)


def create_strategy(config: FinderConfig) -> BaseStrategy:
    """
    Build the strategy selected by a configuration.

    Args:
        config: Configuration holding the rules, strategy and limits

    Returns:
        A strategy ready to run
    """
    if config.strategy is StrategyKind.PARALLEL:
        return ParallelStrategy(
            config.rules,
            workers=config.limits.max_concurrent,
            queue_size=config.limits.queue_size
        )
    if config.strategy is StrategyKind.LAZY:
        return LazyStrategy(config.rules)
    return SequentialStrategy(config.rules)


def _coerce_rules(rules: Union[RuleSet, Dict[str, Any], None], options: Dict[str, Any]) -> RuleSet:
    """Merge a RuleSet or option map with keyword options."""
    if rules is None:
        return RuleSet.from_options(options)
    if isinstance(rules, dict):
        merged = dict(rules)
        merged.update(options)
        return RuleSet.from_options(merged)
    if not isinstance(rules, RuleSet):
        raise ConfigurationError(f"Expected RuleSet or option map, got {type(rules).__name__}")
    if options:
        merged = rules.to_options()
        merged.update(options)
        return RuleSet.from_options(merged)
    return rules


def find(
    rules: Union[RuleSet, Dict[str, Any], None] = None,
    strategy: Union[str, StrategyKind] = StrategyKind.SEQUENTIAL,
    workers: Optional[int] = None,
    callback: Optional[MatchCallback] = None,
    **options: Any
) -> SearchResults:
    """
    Run a search and collect its results.

    Example:
        >>> results = find(path='/usr/local/lib', name='*.rb', follow=False)
        >>> results.paths()

    Args:
        rules: A RuleSet or option map; keyword options are merged on top
        strategy: ``"sequential"``, ``"parallel"`` or ``"lazy"``
        workers: Worker threads for the parallel strategy
        callback: Per-match callback; matches are then not stored
        **options: Rule options such as ``path``, ``name`` or ``size``

    Returns:
        SearchResults of the run

    Raises:
        ConfigurationError: If the rules or strategy are invalid
        FatalTraversalError: If a root does not exist
    """
    limits = LimitsConfig() if workers is None else LimitsConfig(max_concurrent=max(workers, 1))
    try:
        config = FinderConfig(rules=_coerce_rules(rules, options), strategy=strategy, limits=limits)
    except ValueError as e:
        raise ConfigurationError(f"Invalid search configuration: {e}") from e

    return create_strategy(config).run(callback)


def iter_find(rules: Union[RuleSet, Dict[str, Any], None] = None, **options: Any) -> LazyMatchIterator:
    """
    Start a fresh lazy search.

    Returns:
        A LazyMatchIterator yielding FileMatch objects in breadth-first order
    """
    return LazyMatchIterator(_coerce_rules(rules, options))
