# governance_engine/engine.py
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from governance_engine.causal_method_selection import run_causal_method_evaluation
from governance_engine.config import DEFAULT_CONFIG, GovernanceConfig
from governance_engine.envelope import (
    GovernanceMode,
    GovernanceResultEnvelope,
    GovernanceStream,
)
from governance_engine.errors import GovernanceInputError
from governance_engine.law_falsification import run_law_falsification_evaluation
from governance_engine.policy_evaluation import run_policy_evaluation
from governance_engine.uncertainty_calibration import run_uncertainty_calibration

logger = logging.getLogger(__name__)

_RUNNERS: Dict[GovernanceStream, Callable[..., Any]] = {
    GovernanceStream.POLICY: run_policy_evaluation,
    GovernanceStream.CAUSAL_METHOD: run_causal_method_evaluation,
    GovernanceStream.CALIBRATION: run_uncertainty_calibration,
    GovernanceStream.LAW: run_law_falsification_evaluation,
}


def parse_stream(stream: Union[str, GovernanceStream]) -> GovernanceStream:
    try:
        return GovernanceStream(stream)
    except ValueError:
        raise GovernanceInputError(
            f"Unknown stream {stream!r}; expected one of {[s.value for s in GovernanceStream]}"
        ) from None


class GovernanceEngine:
    """
    Dispatches scenario packs to the evaluation stream that owns them.
    The engine holds no state between calls besides its configuration.
    """
    def __init__(self, config: Optional[GovernanceConfig] = None):
        self.config = config or DEFAULT_CONFIG

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "GovernanceEngine":
        return cls(GovernanceConfig.from_yaml(str(config_path)))

    def evaluate(
        self,
        stream: Union[str, GovernanceStream],
        pack: Mapping[str, Any],
        seed: int,
        mode: Union[str, GovernanceMode] = GovernanceMode.REPORT,
        overrides: Any = (),
        now: Optional[datetime] = None,
    ) -> List[GovernanceResultEnvelope]:
        """
        Evaluates a pack on one stream. The policy stream's aggregate
        envelope is returned as a one-element list.
        """
        stream = parse_stream(stream)
        logger.debug(f"Dispatching pack to stream '{stream.value}' (seed={seed})")
        runner = _RUNNERS[stream]
        result = runner(pack, seed, mode, overrides=overrides, now=now, config=self.config)
        if isinstance(result, GovernanceResultEnvelope):
            return [result]
        return list(result)
