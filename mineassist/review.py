"""Post-game review: judge recorded moves, suggest improvements, track trends across games."""

import time
import uuid
from dataclasses import replace
from datetime import datetime
from typing import List, Optional, Sequence

import numpy as np

from .board import BoardView, GameState
from .hints import HintEngine
from .models import (
    Action,
    Coord,
    GameAnalysis,
    MoveRecord,
    ProbabilitySnapshot,
    SkillArea,
)


def record_move(
    board: BoardView,
    snapshot: Optional[ProbabilitySnapshot],
    cell: Coord,
    action: Action,
    engine: Optional[HintEngine] = None,
    *,
    hint_used: bool = False,
    timestamp: Optional[datetime] = None,
) -> MoveRecord:
    """
    Judge a move against the hint engine's options before the move is applied.

    With certain moves available the move is optimal if it is one of them.
    Otherwise it is optimal if it reveals a cell no more likely to be a mine
    than the engine's best guess. Without a usable snapshot the verdict is
    left as None.
    """
    engine = engine or HintEngine()
    timestamp = timestamp or datetime.now()
    if snapshot is None or snapshot.is_empty():
        return MoveRecord(cell, action, timestamp, hint_used=hint_used)

    safe_moves = engine.rank(engine.find_safe_moves(board, snapshot))
    if safe_moves:
        was_optimal = any(m.cell == cell and m.action is action for m in safe_moves)
        return MoveRecord(cell, action, timestamp, was_optimal, tuple(safe_moves), hint_used)

    best = engine.find_best_probabilistic_move(board, snapshot)
    if best is None:
        return MoveRecord(cell, action, timestamp, hint_used=hint_used)

    probability = snapshot.probabilities.get(cell)
    was_optimal = (
        action is Action.REVEAL
        and probability is not None
        and probability <= snapshot.probabilities[best.cell]
    )
    return MoveRecord(cell, action, timestamp, was_optimal, (best,), hint_used)


class GameAnalyzer:
    """
    Reviews finished games built from :class:`MoveRecord` lists.

    Moves without a verdict are judged by a fallback: flags count as optimal,
    reveals do not.
    """

    RECENT_GAMES = 5
    RECENT_SKILL_GAMES = 3
    MIN_GAMES_FOR_PATTERNS = 5
    SLOW_MOVE_SECONDS = 30
    QUICK_MOVE_SECONDS = 2

    def analyze_game(self, moves: Sequence[MoveRecord], final_board: BoardView) -> GameAnalysis:
        """Summarize one game: efficiency, hints, mistakes, insights and skills."""
        judged = self._judge(moves)
        final_state = final_board.game_state

        return GameAnalysis(
            game_id=f"game_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}",
            total_moves=len(judged),
            optimal_moves=sum(1 for m in judged if m.was_optimal),
            hints_used=sum(1 for m in judged if m.hint_used),
            critical_mistakes=self._critical_mistakes(judged, final_state),
            missed_opportunities=self._missed_opportunities(judged),
            strategic_insights=self._strategic_insights(judged, final_state),
            skills_demonstrated=self._demonstrated_skills(judged, final_state),
        )

    def identify_suboptimal_moves(self, moves: Sequence[MoveRecord]) -> List[MoveRecord]:
        return [m for m in self._judge(moves) if not m.was_optimal]

    def improvement_suggestions(self, analysis: GameAnalysis) -> List[str]:
        """Advice for the next game; never empty."""
        suggestions: List[str] = []
        efficiency = analysis.efficiency

        if efficiency < 0.7:
            suggestions.append(
                "Focus on analyzing the board state more carefully before making moves. "
                "Look for guaranteed safe cells first."
            )
        if analysis.critical_mistakes:
            suggestions.append(
                "Avoid rushing into moves. Take time to count adjacent mines and verify "
                "your deductions."
            )
        if len(analysis.missed_opportunities) > 2:
            suggestions.append(
                "Practice identifying patterns where multiple cells can be safely "
                "revealed or flagged simultaneously."
            )

        hint_ratio = analysis.hints_used / analysis.total_moves if analysis.total_moves else 0.0
        if hint_ratio > 0.3:
            suggestions.append(
                "Try to develop your pattern recognition skills to reduce reliance on hints."
            )
        elif hint_ratio < 0.1 and efficiency < 0.8:
            suggestions.append("Consider using hints when stuck to learn optimal strategies.")

        skills = set(analysis.skills_demonstrated)
        if SkillArea.PATTERN_RECOGNITION not in skills:
            suggestions.append(
                "Work on recognizing common Minesweeper patterns like 1-2-1 sequences "
                "and corner configurations."
            )
        if SkillArea.PROBABILITY_ANALYSIS not in skills:
            suggestions.append(
                "Practice calculating mine probabilities in ambiguous situations to make "
                "better educated guesses."
            )
        if SkillArea.STRATEGIC_PLANNING not in skills:
            suggestions.append(
                "Plan your moves to maximize information gain. Prioritize cells that "
                "will reveal the most about surrounding areas."
            )

        if not suggestions:
            if efficiency >= 0.9:
                suggestions.append(
                    "Excellent performance! Continue to practice advanced techniques to "
                    "maintain your high skill level."
                )
            elif efficiency >= 0.8:
                suggestions.append(
                    "Good job! Focus on consistency to improve your success rate further."
                )
            else:
                suggestions.append(
                    "Keep practicing to improve your strategic thinking and pattern "
                    "recognition skills."
                )
        return suggestions

    def performance_trends(self, analyses: Sequence[GameAnalysis]) -> List[str]:
        """
        Compare recent games with the whole history.

        Efficiency and hint usage of the last ``RECENT_GAMES`` games are
        compared with the overall averages. Skill progression, mistake
        patterns and consistency need at least ``MIN_GAMES_FOR_PATTERNS``
        games.
        """
        if len(analyses) < 2:
            return ["Not enough games to identify trends. Play more games for detailed analysis."]

        trends: List[str] = []
        recent = analyses[-self.RECENT_GAMES:]

        efficiencies = np.array([a.efficiency for a in analyses])
        overall_efficiency = float(efficiencies.mean())
        recent_efficiency = float(efficiencies[-self.RECENT_GAMES:].mean())
        if recent_efficiency > overall_efficiency + 0.1:
            trends.append("Your move efficiency has improved significantly in recent games.")
        elif recent_efficiency < overall_efficiency - 0.1:
            trends.append(
                "Your move efficiency has declined recently. Consider slowing down and "
                "analyzing more carefully."
            )

        hints = np.array([a.hints_used for a in analyses], dtype=float)
        overall_hints = float(hints.mean())
        recent_hints = float(hints[-self.RECENT_GAMES:].mean())
        if recent_hints < overall_hints - 1:
            trends.append("You're becoming more independent and using fewer hints over time.")
        elif recent_hints > overall_hints + 1:
            trends.append("You've been relying on hints more frequently in recent games.")

        mistakes = np.array([len(a.critical_mistakes) for a in analyses], dtype=float)
        recent_mistakes = sum(len(a.critical_mistakes) for a in recent) / len(recent)
        if recent_mistakes < float(mistakes.mean()) - 0.5:
            trends.append(
                "You're making fewer critical mistakes - your risk assessment is improving."
            )

        if len(analyses) >= self.MIN_GAMES_FOR_PATTERNS:
            trends.extend(self._skill_progression(analyses))
            trends.extend(self._mistake_patterns(analyses))
            trends.extend(self._consistency(analyses))

        if not trends:
            if overall_efficiency >= 0.8:
                trends.append("Your performance is consistent with good efficiency across games.")
            elif overall_efficiency >= 0.6:
                trends.append(
                    "Your performance shows room for improvement in efficiency. "
                    "Focus on strategic planning."
                )
            else:
                trends.append(
                    "Your performance indicates opportunities to improve efficiency "
                    "through practice."
                )
            if overall_hints > 2:
                trends.append("Your hints usage pattern shows regular reliance on assistance.")
        return trends

    def game_replay(self, moves: Sequence[MoveRecord]) -> List[str]:
        """Move-by-move commentary followed by a short summary."""
        if not moves:
            return []

        judged = self._judge(moves)
        optimal = sum(1 for m in judged if m.was_optimal)
        lines = [
            f"=== Game Replay Analysis ({len(judged)} moves) ===",
            f"Overall efficiency: {optimal / len(judged) * 100:.1f}% "
            f"({optimal}/{len(judged)} optimal moves)",
        ]

        for index, move in enumerate(judged):
            verb = "revealed" if move.action is Action.REVEAL else "flagged"
            comment = f"Move {index + 1}: {verb} cell ({move.x}, {move.y})"

            context = self._context(judged, index)
            if context:
                comment += f" {context}"
            comment += self._verdict(move, index)

            if index > 0:
                seconds = (move.timestamp - judged[index - 1].timestamp).total_seconds()
                if seconds > self.SLOW_MOVE_SECONDS:
                    comment += f" [Took {round(seconds)}s - careful consideration]"
                elif seconds < self.QUICK_MOVE_SECONDS:
                    comment += " [Quick decision]"
            lines.append(comment)

            if index > 0 and index % 5 == 0:
                window = judged[max(0, index - 4):index + 1]
                window_optimal = sum(1 for m in window if m.was_optimal)
                if window_optimal == len(window):
                    lines.append(
                        f"   Excellent sequence! {window_optimal} optimal moves in a row."
                    )
                elif window_optimal < len(window) / 2:
                    lines.append(
                        "   Consider slowing down - recent moves could be more strategic."
                    )

        duration = round((judged[-1].timestamp - judged[0].timestamp).total_seconds())
        flags = sum(1 for m in judged if m.action is Action.FLAG)
        reveals = len(judged) - flags
        lines.append("=== Game Summary ===")
        lines.append(f"Game duration: {duration} seconds")
        lines.append(f"Average time per move: {duration / len(judged):.1f} seconds")
        lines.append(f"Move distribution: {reveals} reveals, {flags} flags")
        if flags == 0:
            lines.append("Tip: Using flags can help with logical deduction and reduce mistakes.")
        elif flags > reveals:
            lines.append("Good use of flags! This conservative approach helps avoid mistakes.")
        return lines

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _judge(self, moves: Sequence[MoveRecord]) -> List[MoveRecord]:
        return [
            m if m.was_optimal is not None else replace(m, was_optimal=m.action is Action.FLAG)
            for m in moves
        ]

    def _critical_mistakes(
        self, moves: Sequence[MoveRecord], final_state: GameState
    ) -> List[MoveRecord]:
        mistakes: List[MoveRecord] = []
        if final_state is GameState.LOST and moves and moves[-1].action is Action.REVEAL:
            mistakes.append(moves[-1])

        for move in moves:
            if move.was_optimal or not move.alternatives or move.action is not Action.REVEAL:
                continue
            if move.alternatives[0].confidence > 0.9 and not any(m is move for m in mistakes):
                mistakes.append(move)
        return mistakes

    def _missed_opportunities(self, moves: Sequence[MoveRecord]) -> List[MoveRecord]:
        return [
            m
            for m in moves
            if not m.was_optimal
            and len(m.alternatives) > 1
            and any(alt.confidence > 0.8 for alt in m.alternatives)
        ]

    def _strategic_insights(
        self, moves: Sequence[MoveRecord], final_state: GameState
    ) -> List[str]:
        insights: List[str] = []
        flags = sum(1 for m in moves if m.action is Action.FLAG)
        reveals = len(moves) - flags

        if flags == 0:
            insights.append(
                "Consider using flags to mark suspected mines - they help with logical deduction."
            )
        elif flags > reveals:
            insights.append(
                "You're using flags effectively, but don't be afraid to make reveal moves "
                "when you're confident."
            )

        if moves:
            if final_state is GameState.WON:
                insights.append("Congratulations on winning! Your systematic approach paid off.")
            elif final_state is GameState.LOST:
                insights.append(
                    "Don't be discouraged by the loss - each game is a learning opportunity."
                )

        efficiency = sum(1 for m in moves if m.was_optimal) / len(moves) if moves else 0.0
        if efficiency > 0.8:
            insights.append("Excellent move efficiency! You're making consistently good decisions.")
        elif efficiency < 0.5:
            insights.append("Focus on taking more time to analyze each move before committing.")
        return insights

    def _demonstrated_skills(
        self, moves: Sequence[MoveRecord], final_state: GameState
    ) -> List[SkillArea]:
        skills: List[SkillArea] = []

        flag_moves = [m for m in moves if m.action is Action.FLAG]
        optimal_flags = sum(1 for m in flag_moves if m.was_optimal)
        if optimal_flags and optimal_flags / len(flag_moves) > 0.7:
            skills.append(SkillArea.PATTERN_RECOGNITION)

        uncertain = [m for m in moves if m.alternatives and m.alternatives[0].confidence < 0.9]
        good_uncertain = sum(1 for m in uncertain if m.was_optimal)
        if good_uncertain > len(uncertain) * 0.6:
            skills.append(SkillArea.PROBABILITY_ANALYSIS)

        efficiency = sum(1 for m in moves if m.was_optimal) / len(moves) if moves else 0.0
        if efficiency > 0.75:
            skills.append(SkillArea.STRATEGIC_PLANNING)

        if not self._critical_mistakes(moves, final_state) and len(moves) > 5:
            skills.append(SkillArea.RISK_ASSESSMENT)
        return skills

    def _context(self, moves: Sequence[MoveRecord], index: int) -> str:
        if index == 0:
            return "[Opening move]"

        move, prev = moves[index], moves[index - 1]
        if prev.action is Action.FLAG and move.action is Action.REVEAL:
            return "[Following flag with reveal - good pattern]"
        if prev.action is Action.REVEAL and move.action is Action.REVEAL:
            if abs(move.x - prev.x) + abs(move.y - prev.y) == 1:
                return "[Adjacent reveal - systematic approach]"
        if move.action is Action.FLAG:
            for earlier in moves[:index]:
                distance = abs(move.x - earlier.x) + abs(move.y - earlier.y)
                if earlier.action is Action.FLAG and distance <= 2:
                    return "[Flagging near other flags - pattern recognition]"
        return ""

    def _verdict(self, move: MoveRecord, index: int) -> str:
        if move.was_optimal:
            text = " Excellent choice!"
            if move.alternatives:
                best = move.alternatives[0]
                if best.confidence > 0.9:
                    text += f" This was one of {len(move.alternatives)} safe moves available."
                elif best.confidence > 0.7:
                    text += (
                        " Good strategic thinking - this move had "
                        f"{best.confidence * 100:.0f}% confidence."
                    )
            if move.action is Action.FLAG:
                text += " Flagging suspected mines helps with logical deduction."
            elif index == 0:
                text += " Good opening move - starting with corner or edge cells is often safe."
            return text

        text = " Suboptimal move."
        if move.alternatives:
            best = move.alternatives[0]
            if best.confidence > 0.8:
                text += (
                    f" Much safer option available: {best.action.value} ({best.x}, {best.y}) "
                    f"with {best.confidence * 100:.0f}% confidence."
                )
            else:
                text += (
                    f" Better option: {best.action.value} ({best.x}, {best.y}) - {best.reasoning}"
                )
            if best.expected_information > 2:
                text += " This alternative would have revealed more information about the board."
        if move.action is Action.REVEAL and index > 0:
            text += (
                " Consider using flags to mark suspected mines before revealing "
                "uncertain cells."
            )
        return text

    def _skill_progression(self, analyses: Sequence[GameAnalysis]) -> List[str]:
        progression: List[str] = []
        for skill in SkillArea:
            shown = np.array([skill in a.skills_demonstrated for a in analyses], dtype=float)
            if shown[-self.RECENT_SKILL_GAMES:].mean() > shown.mean() + 0.3:
                name = skill.value.replace("_", " ")
                progression.append(f"Your {name} skills are showing significant improvement.")
        return progression

    def _mistake_patterns(self, analyses: Sequence[GameAnalysis]) -> List[str]:
        patterns: List[str] = []

        mistakes = np.array([len(a.critical_mistakes) for a in analyses], dtype=float)
        recent = mistakes[-self.RECENT_SKILL_GAMES:]
        earlier = mistakes[:-self.RECENT_SKILL_GAMES]
        if len(earlier) and recent.mean() > earlier.mean() + 0.5:
            patterns.append(
                "You've been making more critical mistakes recently. Consider taking breaks "
                "between games to maintain focus."
            )

        missed = np.array([len(a.missed_opportunities) for a in analyses], dtype=float)
        if missed.mean() > 2:
            patterns.append(
                "You frequently miss opportunities for efficient moves. Practice looking "
                "for cells that can be safely revealed together."
            )

        if np.std([a.hints_used for a in analyses]) > 2:
            patterns.append(
                "Your hint usage varies significantly between games. Try to develop more "
                "consistent problem-solving approaches."
            )

        for skill in SkillArea:
            shown = sum(1 for a in analyses if skill in a.skills_demonstrated)
            frequency = shown / len(analyses)
            if 0.2 < frequency < 0.8:
                patterns.append(
                    f"Your {skill.value.replace('_', ' ')} skills are inconsistent. "
                    "Focus on applying these skills more regularly."
                )
        return patterns

    def _consistency(self, analyses: Sequence[GameAnalysis]) -> List[str]:
        consistency: List[str] = []

        spread = float(np.std([a.efficiency for a in analyses]))
        if spread < 0.1:
            consistency.append(
                "Your performance is very consistent - you've developed reliable strategies."
            )
        elif spread > 0.3:
            consistency.append(
                "Your performance varies significantly between games. Focus on developing "
                "more consistent approaches."
            )

        move_counts = np.array([a.total_moves for a in analyses], dtype=float)
        if move_counts.mean() > 0 and move_counts.std() / move_counts.mean() > 0.5:
            consistency.append(
                "Your game length varies considerably. This might indicate inconsistent "
                "strategic approaches."
            )
        return consistency
