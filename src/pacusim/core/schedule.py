"""Case list generation: template, block-based and custom schedules.

All generated schedules pack cases back to back per OR with a fixed
turnover gap, so no two cases in one OR on one day overlap.
"""

import itertools
import logging
from collections import defaultdict
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from pacusim.core.distributions import normal_random, weighted_random_selection
from pacusim.core.entities import MINUTES_PER_DAY, ScheduleMode
from pacusim.core.scenario import (
    ORBlock, PatientClass, ScheduleTemplate, SimulationParams, SurgeryCaseInput,
)

logger = logging.getLogger(__name__)

# Overrun inflation range (fraction of the drawn duration)
OVERRUN_RANGE = (0.10, 0.50)

# Daily volume is drawn uniformly within +/-15% of the template average
VOLUME_JITTER = 0.15


def draw_surgery_duration(
    rng: np.random.Generator,
    patient_class: PatientClass,
    overrun_probability: float,
) -> float:
    """Planned surgery minutes for one case.

    Normal duration from the class, inflated by 10-50% with probability
    ``overrun_probability``; rounded to whole minutes, at least one.
    """
    duration = normal_random(
        rng, patient_class.surgery_duration_mean, patient_class.surgery_duration_stddev
    )
    if overrun_probability > 0 and rng.random() < overrun_probability:
        duration *= 1.0 + rng.uniform(*OVERRUN_RANGE)
    return max(1.0, float(round(duration)))


def _known_distribution(
    distribution: Dict[str, float],
    lookup: Dict[str, PatientClass],
    allowed: Optional[Sequence[str]] = None,
) -> Dict[str, float]:
    """Drop unknown classes (and, for blocks, classes not allowed)."""
    return {
        class_id: weight for class_id, weight in distribution.items()
        if class_id in lookup and (allowed is None or class_id in allowed)
    }


def _pack_window(
    rng: np.random.Generator,
    or_id: str,
    window_start: float,
    window_end: float,
    distribution: Dict[str, float],
    lookup: Dict[str, PatientClass],
    template: ScheduleTemplate,
    case_ids: Iterator[str],
    limit: Optional[int] = None,
) -> List[SurgeryCaseInput]:
    """Pack cases back to back into one OR window.

    Stops when the next case plus turnover would run past ``window_end``
    or when ``limit`` cases have been placed.
    """
    cases: List[SurgeryCaseInput] = []
    cursor = window_start
    while limit is None or len(cases) < limit:
        class_id = weighted_random_selection(rng, distribution)
        if class_id is None:
            break
        duration = draw_surgery_duration(rng, lookup[class_id], template.overrun_probability)
        if cursor + duration + template.turnover_minutes > window_end:
            break
        cases.append(SurgeryCaseInput(
            id=next(case_ids),
            class_id=class_id,
            or_room=or_id,
            scheduled_start=cursor,
            duration=duration,
        ))
        cursor += duration + template.turnover_minutes
    return cases


def template_day(
    params: SimulationParams,
    rng: np.random.Generator,
    day: int,
    case_ids: Iterator[str],
    volume: Optional[int] = None,
) -> List[SurgeryCaseInput]:
    """Generate one day from the template.

    Cases are dealt round-robin to the ORs, each OR packed sequentially
    from the template start time; an OR is closed for the day once its
    next case would run past the template end time.

    Args:
        params: Scenario parameters.
        rng: Schedule RNG stream.
        day: Simulation day index.
        case_ids: Shared case id sequence.
        volume: Fixed case count; drawn around the template average if None.

    Returns:
        The day's cases.
    """
    template = params.schedule_template
    lookup = params.class_lookup
    distribution = _known_distribution(params.patient_class_distribution, lookup)
    if not any(w > 0 for w in distribution.values()):
        logger.warning("Patient class distribution has no positive weights; no cases")
        return []

    if volume is None:
        jitter = 1.0 - VOLUME_JITTER + 2 * VOLUME_JITTER * rng.random()
        volume = int(round(template.average_daily_surgeries * jitter))

    day_offset = day * MINUTES_PER_DAY
    day_end = day_offset + template.or_end_time
    cursors = {or_id: float(day_offset + template.or_start_time) for or_id in params.or_ids}
    open_ors = list(params.or_ids)

    cases: List[SurgeryCaseInput] = []
    turn = 0
    while len(cases) < volume and open_ors:
        or_id = open_ors[turn % len(open_ors)]
        class_id = weighted_random_selection(rng, distribution)
        duration = draw_surgery_duration(rng, lookup[class_id], template.overrun_probability)
        start = cursors[or_id]
        if start + duration + template.turnover_minutes > day_end:
            open_ors.remove(or_id)
            continue
        cases.append(SurgeryCaseInput(
            id=next(case_ids),
            class_id=class_id,
            or_room=or_id,
            scheduled_start=start,
            duration=duration,
        ))
        cursors[or_id] = start + duration + template.turnover_minutes
        turn += 1
    return cases


def block_day(
    params: SimulationParams,
    rng: np.random.Generator,
    day: int,
    case_ids: Iterator[str],
) -> List[SurgeryCaseInput]:
    """Fill the day's OR blocks.

    Blocks are grouped by OR and filled in start order; each block only
    draws from its allowed classes (weights renormalised) and cases never
    cross the block's end.
    """
    lookup = params.class_lookup
    template = params.schedule_template
    day_offset = day * MINUTES_PER_DAY

    blocks_by_or: Dict[str, List[ORBlock]] = defaultdict(list)
    for block in params.or_blocks:
        if block.applies_to(day):
            blocks_by_or[block.or_id].append(block)

    cases: List[SurgeryCaseInput] = []
    for or_id, blocks in blocks_by_or.items():
        or_cursor = float(day_offset)
        for block in sorted(blocks, key=lambda b: b.start):
            distribution = _known_distribution(
                params.patient_class_distribution, lookup, block.allowed_classes
            )
            if not any(w > 0 for w in distribution.values()):
                logger.warning(
                    f"Block {block.id} on day {day}: no allowed class has positive "
                    f"weight, block left empty"
                )
                continue
            window_start = max(float(day_offset + block.start), or_cursor)
            window_end = float(day_offset + block.end)
            packed = _pack_window(
                rng, or_id, window_start, window_end, distribution, lookup,
                template, case_ids,
            )
            if packed:
                or_cursor = packed[-1].scheduled_end + template.turnover_minutes
            cases.extend(packed)
    return cases


def generate_schedule(
    params: SimulationParams, rng: np.random.Generator
) -> List[SurgeryCaseInput]:
    """Produce the case list for a run.

    Custom lists are returned verbatim. For template and block schedules,
    any day with fewer than ``min_daily_cases`` cases is regenerated from
    the template at that minimum volume.

    Args:
        params: Scenario parameters.
        rng: Schedule RNG stream.

    Returns:
        Cases sorted by scheduled start.
    """
    if params.schedule_mode == ScheduleMode.CUSTOM:
        cases = list(params.custom_cases)
        overlaps = find_overlaps(cases, params.schedule_template.turnover_minutes)
        if overlaps:
            logger.warning(f"Custom case list has {len(overlaps)} overlapping pairs")
        return cases

    counter = itertools.count(1)
    case_ids = (f"case-{n}" for n in counter)
    minimum = params.schedule_template.min_daily_cases

    cases = []
    for day in range(params.simulation_days):
        if params.schedule_mode == ScheduleMode.BLOCK:
            day_cases = block_day(params, rng, day, case_ids)
        else:
            day_cases = template_day(params, rng, day, case_ids)

        if len(day_cases) < minimum:
            logger.warning(
                f"Day {day}: only {len(day_cases)} cases generated, "
                f"regenerating from template at {minimum} cases"
            )
            day_cases = template_day(params, rng, day, case_ids, volume=minimum)
        cases.extend(day_cases)

    cases.sort(key=lambda c: c.scheduled_start)
    logger.info(
        f"Generated {len(cases)} cases ({params.schedule_mode.value}) "
        f"over {params.simulation_days} days"
    )
    return cases


def find_overlaps(
    cases: Sequence[SurgeryCaseInput], turnover: float = 0.0
) -> List[Tuple[str, str]]:
    """Pairs of consecutive cases in the same OR and day that overlap.

    Two cases overlap if the later one starts before the earlier one's
    end plus ``turnover``.
    """
    groups: Dict[Tuple[str, int], List[SurgeryCaseInput]] = defaultdict(list)
    for case in cases:
        groups[(case.or_room, case.day)].append(case)

    overlaps = []
    for group in groups.values():
        ordered = sorted(group, key=lambda c: c.scheduled_start)
        for earlier, later in zip(ordered, ordered[1:]):
            if later.scheduled_start < earlier.scheduled_end + turnover - 1e-9:
                overlaps.append((earlier.id, later.id))
    return overlaps


def generate_default_blocks(
    or_id: str,
    day: int,
    open_time: int = 480,
    close_time: int = 960,
    day_classes: Sequence[str] = ("PAIKI", "PKL"),
    evening_classes: Sequence[str] = ("HERKO", "OSASTO"),
) -> List[ORBlock]:
    """Standard three-block day for one OR.

    Morning and afternoon blocks of three hours for day-surgery classes,
    then an evening block until closing for ward-bound classes.
    """
    blocks = [
        ORBlock(
            id=f"block-{or_id}-{day}-morning",
            or_id=or_id, day=day,
            start=open_time, end=min(open_time + 180, close_time),
            allowed_classes=list(day_classes), label="Morning",
        ),
    ]
    if open_time + 180 < close_time:
        blocks.append(ORBlock(
            id=f"block-{or_id}-{day}-afternoon",
            or_id=or_id, day=day,
            start=open_time + 180, end=min(open_time + 360, close_time),
            allowed_classes=list(day_classes), label="Afternoon",
        ))
    if open_time + 360 < close_time:
        blocks.append(ORBlock(
            id=f"block-{or_id}-{day}-evening",
            or_id=or_id, day=day,
            start=open_time + 360, end=close_time,
            allowed_classes=list(evening_classes), label="Evening",
        ))
    return blocks


def generate_default_block_schedule(
    or_ids: Sequence[str],
    days: Sequence[int] = (0, 1, 2, 3, 4),
    open_time: int = 480,
    close_time: int = 960,
) -> List[ORBlock]:
    """Default blocks for every OR on the given days of week."""
    blocks = []
    for or_id in or_ids:
        for day in days:
            blocks.extend(generate_default_blocks(or_id, day, open_time, close_time))
    return blocks
