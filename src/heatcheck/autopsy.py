"""
Bad Beat Autopsy

Explains a missed bet: which root causes fired, whether the process was
sound (grade A-F) and how much of the miss was bad luck. External shocks
(injury, blowout) never count against the grade.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .models import AutopsyCause, BetAutopsy, Serializable

GRADES = ('A', 'B', 'C', 'D', 'F')

BLOWOUT_MARGIN = 25
LOW_MINUTES = 25
NARROW_MISS = 1.5
UNLUCKY_MARGIN = 2
STRONG_CONVERGENCE = 5
WEAK_CONVERGENCE = 3
WOULD_BET_AGAIN_UNLUCK = 60


@dataclass
class AutopsyInput:
    player_name: str
    stat: str
    line: float
    direction: str  # over | under
    actual_value: float
    convergence_at_time_of_bet: int
    convergence_total: int = 10  # factors evaluated, for display
    minutes_played: Optional[float] = None
    team_result: Optional[str] = None  # 'W' | 'L'
    final_margin: Optional[float] = None  # point differential
    was_blowout: bool = False
    had_injury_during_game: bool = False
    had_lineup_change: bool = False
    is_back_to_back: bool = False

    @property
    def margin(self) -> float:
        """Signed miss margin from the bettor's side (negative on a loss)."""
        if self.direction == 'over':
            return self.actual_value - self.line
        return self.line - self.actual_value


@dataclass
class GraveyardEntry(Serializable):
    """A graded loss kept for pattern analysis."""
    id: str
    player_name: str
    stat: str
    line: float
    direction: str
    actual_value: float
    margin: float
    convergence_at_time_of_bet: int
    autopsy: BetAutopsy
    date: str = ''


@dataclass
class LossPatterns(Serializable):
    total_entries: int = 0
    avg_margin: float = 0.0
    avg_convergence: float = 0.0
    avg_unluck_score: int = 0
    top_causes: List[Dict] = field(default_factory=list)
    grade_distribution: Dict[str, int] = field(default_factory=lambda: {g: 0 for g in GRADES})
    would_bet_again_rate: int = 0  # percent


def identify_root_causes(inp: AutopsyInput) -> List[AutopsyCause]:
    """
    Fixed-priority rule cascade. Always returns at least one cause.
    """
    causes = []
    conv = inp.convergence_at_time_of_bet
    total = inp.convergence_total
    miss_by = abs(inp.margin)
    low_minutes = inp.minutes_played is not None and inp.minutes_played < LOW_MINUTES

    blowout = inp.was_blowout or (
        inp.final_margin is not None and abs(inp.final_margin) >= BLOWOUT_MARGIN)
    if blowout:
        final = f"{inp.final_margin:g}" if inp.final_margin is not None else 'unknown'
        causes.append(AutopsyCause(
            type='blowout',
            label='Game was a blowout',
            detail=f"Final margin of {final} points likely reduced playing time for starters.",
            was_knowable=False,
            severity='primary',
        ))

    if inp.had_injury_during_game:
        causes.append(AutopsyCause(
            type='injury_during_game',
            label='Player was injured during the game',
            detail='An in-game injury cut into playing time and performance.',
            was_knowable=False,
            severity='primary',
        ))

    if low_minutes:
        causes.append(AutopsyCause(
            type='minute_restriction',
            label='Limited minutes played',
            detail=(f"Only {inp.minutes_played:g} minutes. Could indicate foul trouble, "
                    "blowout or a restriction."),
            was_knowable=False,
            severity='contributing' if causes else 'primary',
        ))

    if low_minutes and not inp.was_blowout:
        causes.append(AutopsyCause(
            type='foul_trouble',
            label='Possible foul trouble',
            detail='Low minutes without a blowout game suggests foul trouble or in-game rest.',
            was_knowable=False,
            severity='contributing',
        ))

    if inp.had_lineup_change:
        causes.append(AutopsyCause(
            type='lineup_change',
            label='Lineup change affected role',
            detail='A teammate entering or exiting the lineup may have shifted usage.',
            was_knowable=True,
            severity='contributing',
        ))

    if inp.is_back_to_back:
        causes.append(AutopsyCause(
            type='game_flow',
            label='Back-to-back fatigue',
            detail='Playing on a back-to-back may have reduced energy and performance.',
            was_knowable=True,
            severity='contributing',
        ))

    if miss_by <= NARROW_MISS and not causes:
        causes.append(AutopsyCause(
            type='regression',
            label='Narrow miss, normal variance',
            detail=f"Missed by only {miss_by:.1f}. This is within normal variance.",
            was_knowable=False,
            severity='primary',
        ))

    if conv >= STRONG_CONVERGENCE and not causes:
        causes.append(AutopsyCause(
            type='line_was_sharp',
            label='Sharp line / market-efficient',
            detail=(f"Despite {conv}/{total} convergence, the line held. "
                    "Market may have been efficient."),
            was_knowable=False,
            severity='primary',
        ))

    if conv <= WEAK_CONVERGENCE and not causes:
        causes.append(AutopsyCause(
            type='bad_matchup_read',
            label='Low convergence signal',
            detail=f"Convergence was only {conv}/{total}, a weak signal to begin with.",
            was_knowable=True,
            severity='primary',
        ))

    if not causes:
        causes.append(AutopsyCause(
            type='other',
            label='No clear root cause',
            detail=f"Missed by {miss_by:.1f}. No obvious external factor detected.",
            was_knowable=False,
            severity='primary',
        ))

    return causes


def assess_luck(inp: AutopsyInput, causes: Sequence[AutopsyCause]) -> bool:
    if abs(inp.margin) <= UNLUCKY_MARGIN and inp.convergence_at_time_of_bet >= STRONG_CONVERGENCE:
        return True
    return any(c.type in ('injury_during_game', 'blowout') for c in causes)


def unluck_score(inp: AutopsyInput, causes: Sequence[AutopsyCause]) -> int:
    """0-100, starting from a neutral 50."""
    score = 50
    miss_by = abs(inp.margin)
    conv = inp.convergence_at_time_of_bet

    if miss_by <= 0.5:
        score += 30
    elif miss_by <= 1.5:
        score += 20
    elif miss_by <= 3:
        score += 10
    else:
        score -= 10

    if conv >= 6:
        score += 15
    elif conv >= 5:
        score += 10
    elif conv <= 3:
        score -= 15

    score += 5 * sum(1 for c in causes if not c.was_knowable)

    return max(0, min(100, score))


def grade_process(convergence: int, causes: Sequence[AutopsyCause]) -> str:
    knowable = [c for c in causes if c.was_knowable]

    if convergence >= 6 and not knowable:
        return 'A'
    if convergence >= 5 and not knowable:
        return 'B'
    if convergence >= 4:
        return 'C'
    if convergence >= 3:
        return 'D'
    return 'F'


def process_assessment(grade: str, convergence: int, total: int,
                       causes: Sequence[AutopsyCause]) -> str:
    conv = f"{convergence}/{total} convergence"
    if grade == 'A':
        return (f"Strong process ({conv}). The miss was driven by factors outside "
                "your control. Keep this approach.")
    if grade == 'B':
        return f"Good process ({conv}). Minor refinements possible but the analysis was solid."
    if grade == 'C':
        knowable = [c.label for c in causes if c.was_knowable]
        hint = f"Consider: {', '.join(knowable)}." if knowable else 'The signal was mixed.'
        return f"Average process ({conv}). {hint}"
    if grade == 'D':
        return f"Below-average process ({conv}). The data wasn't strongly supporting this pick."
    return (f"Poor process ({conv}). Convergence was low, so this was more of a gut call "
            "than a data-driven play.")


def extract_lessons(causes: Sequence[AutopsyCause], inp: AutopsyInput) -> List[str]:
    types = {c.type for c in causes}
    lessons = []

    if 'blowout' in types:
        lessons.append('Consider checking implied game script before betting player props '
                       'in lopsided matchups.')
    if types & {'foul_trouble', 'minute_restriction'}:
        lessons.append('Minute projections should be cross-referenced with foul rate history.')
    if 'bad_matchup_read' in types:
        lessons.append('Low convergence picks have a low base rate. Save these for small '
                       'exposure plays.')
    if 'lineup_change' in types:
        lessons.append('Monitor lineup news closer to tip-off for late-breaking changes.')
    if inp.is_back_to_back:
        lessons.append('Back-to-back games carry inherent variance. Factor in fatigue when '
                       'sizing bets.')
    if types & {'regression', 'line_was_sharp'}:
        lessons.append('Narrow misses on strong signals are part of the game. Process over results.')

    if not lessons:
        lessons.append('No clear process improvements identified. Continue trusting the '
                       'convergence model.')
    return lessons


def generate_autopsy(inp: AutopsyInput) -> BetAutopsy:
    """
    Grade a missed bet.

    A good-process bet (grade A/B) or a clearly unlucky one
    (unluck score >= 60) is flagged as worth betting again.
    """
    causes = identify_root_causes(inp)
    grade = grade_process(inp.convergence_at_time_of_bet, causes)
    score = unluck_score(inp, causes)

    return BetAutopsy(
        root_causes=causes,
        process_grade=grade,
        process_assessment=process_assessment(
            grade, inp.convergence_at_time_of_bet, inp.convergence_total, causes),
        was_unlucky=assess_luck(inp, causes),
        unluck_score=score,
        would_bet_again=grade in ('A', 'B') or score >= WOULD_BET_AGAIN_UNLUCK,
        lessons_learned=extract_lessons(causes, inp),
    )


def analyze_loss_patterns(entries: Sequence[GraveyardEntry]) -> LossPatterns:
    """Aggregate a user's graveyard into averages, top causes and grade mix."""
    if not entries:
        return LossPatterns()

    n = len(entries)
    cause_counts = Counter(c.type for e in entries for c in e.autopsy.root_causes)
    grades = {g: 0 for g in GRADES}
    for e in entries:
        grades[e.autopsy.process_grade] += 1

    return LossPatterns(
        total_entries=n,
        avg_margin=round(sum(abs(e.margin) for e in entries) / n, 1),
        avg_convergence=round(sum(e.convergence_at_time_of_bet for e in entries) / n, 1),
        avg_unluck_score=round(sum(e.autopsy.unluck_score for e in entries) / n),
        top_causes=[
            {'type': t, 'count': c, 'percentage': c / n * 100}
            for t, c in cause_counts.most_common(5)
        ],
        grade_distribution=grades,
        would_bet_again_rate=round(sum(1 for e in entries if e.autopsy.would_bet_again) / n * 100),
    )
