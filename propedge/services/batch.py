"""
Batch orchestration: evaluate many props and game lines concurrently.

Every item runs as its own task behind a shared semaphore; the batch joins
on all of them with ``return_exceptions=True`` so one failing item never
affects its siblings.  A raised exception becomes an ERROR-shaped item at
the same index.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from propedge.core.decision import Decision

logger = logging.getLogger(__name__)

BET_DECISIONS = frozenset({Decision.LEAN.value, Decision.STRONG_LEAN.value, Decision.LOCK.value})


def _error_item(kind: str, index: int) -> Dict[str, Any]:
    return {
        "index": index,
        "decision": Decision.ERROR.value,
        "final_confidence": 0.0,
        "suggested_stake": 0.0,
        "flags": ["INTERNAL_ERROR"],
        "message": f"{kind} analysis failed",
    }


class BatchOrchestrator:
    """Fan-out / fan-in over the prop and game-line engines."""

    def __init__(self, props_engine, game_engine, max_concurrency: int = 8):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be ≥ 1, got {max_concurrency!r}.")
        self.props_engine = props_engine
        self.game_engine = game_engine
        self.max_concurrency = max_concurrency

    async def _gather(
        self,
        kind: str,
        items: Sequence[Any],
        evaluate: Callable[[Any], Awaitable[Dict[str, Any]]],
        semaphore: asyncio.Semaphore,
    ) -> List[Dict[str, Any]]:
        async def run_one(item):
            async with semaphore:
                return await evaluate(item)

        settled = await asyncio.gather(*(run_one(item) for item in items), return_exceptions=True)

        results: List[Dict[str, Any]] = []
        for index, outcome in enumerate(settled):
            if isinstance(outcome, BaseException):
                logger.error("%s %d failed: %s", kind, index, outcome, exc_info=outcome)
                results.append(_error_item(kind, index))
            elif not isinstance(outcome, dict):
                logger.error("%s %d returned %s, expected dict", kind, index, type(outcome).__name__)
                results.append(_error_item(kind, index))
            else:
                results.append(outcome)
        return results

    async def run(
        self,
        props: Optional[Sequence[Mapping[str, Any]]] = None,
        games: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        props = list(props or [])
        games = list(games or [])
        semaphore = asyncio.Semaphore(self.max_concurrency)

        prop_results, game_results = await asyncio.gather(
            self._gather("Prop", props, self.props_engine.evaluate_prop, semaphore),
            self._gather("Game", games, self.game_engine.evaluate_game, semaphore),
        )

        prop_errors = sum(1 for r in prop_results if r.get("decision") == Decision.ERROR.value)
        game_errors = sum(1 for r in game_results if r.get("decision") == Decision.ERROR.value)

        logger.info(
            "Batch complete: %d props (%d errors), %d games (%d errors)",
            len(prop_results), prop_errors, len(game_results), game_errors,
        )
        return {
            "props": prop_results,
            "games": game_results,
            "summary": {
                "total_props": len(prop_results),
                "props_to_lock": sum(1 for r in prop_results if r.get("decision") == Decision.LOCK.value),
                "total_games": len(game_results),
                "games_to_bet": sum(1 for r in game_results if r.get("decision") in BET_DECISIONS),
            },
            "errors": {
                "prop_errors": prop_errors,
                "game_errors": game_errors,
                "total": prop_errors + game_errors,
            },
        }
