"""
==============================================================================
Constraint Negotiator Module
==============================================================================

Turns a quality profile, device selection and focus mode into an
ordered fallback chain of acquisition requests.

Relaxation Order:
-----------------
1. Full request: device + resolution/frame rate + focus hint
2. Drop the focus hint
3. Drop resolution and frame rate
4. Drop the explicit device id, keeping only the facing hint

A step identical to its predecessor (no focus hint was requested, or no
explicit device was selected) is omitted. The last candidate is always
the minimal viable request.

==============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from scanbench.catalog import CapabilityCatalog, FocusMode, QualityProfile, get_capability_catalog
from scanbench.devices import ConstraintCandidate, DeviceSelector


# Module logger
logger = logging.getLogger(__name__)


class ConstraintNegotiator:
    """
    Builds deterministic fallback chains.

    build_chain is a pure function of its inputs.

    Example:
        >>> negotiator = ConstraintNegotiator()
        >>> chain = negotiator.build_chain(
        ...     QualityProfile.HIGH, DeviceSelector(device_id="0"), FocusMode.CONTINUOUS
        ... )
        >>> len(chain)
        4
        >>> chain[-1].is_minimal
        True
    """

    def __init__(self, catalog: Optional[CapabilityCatalog] = None) -> None:
        self._catalog = catalog or get_capability_catalog()

    def build_chain(
        self,
        profile: QualityProfile,
        selector: DeviceSelector,
        focus_mode: FocusMode = FocusMode.DEFAULT,
    ) -> Tuple[ConstraintCandidate, ...]:
        """
        Build the candidate chain.

        Args:
            profile: Requested quality tier
            selector: Explicit device or facing hint
            focus_mode: Focus hint (DEFAULT sends none)

        Returns:
            Non-empty tuple of candidates, most constrained first
        """
        tier = self._catalog.tier(profile)
        focus = None if FocusMode(focus_mode) is FocusMode.DEFAULT else FocusMode(focus_mode)

        full = ConstraintCandidate(
            device_id=selector.device_id or None,
            facing=selector.facing,
            resolution=tier.resolution,
            frame_rate=tier.frame_rate,
            focus_mode=focus,
        )
        without_focus = replace(full, focus_mode=None)
        without_resolution = replace(without_focus, resolution=None, frame_rate=None)
        minimal = ConstraintCandidate(device_id=None, facing=selector.facing)

        chain: List[ConstraintCandidate] = []
        for candidate in (full, without_focus, without_resolution, minimal):
            if not chain or chain[-1] != candidate:
                chain.append(candidate)

        logger.debug(
            "Built chain: " + " | ".join(candidate.describe() for candidate in chain)
        )
        return tuple(chain)
