# guidance.py
# Human-readable turn-by-turn text for display or speech.
# Formatting only: no tracking state lives here.

from dataclasses import dataclass
from typing import Dict, Optional

from .models import Instruction, Route, TurnSign


SIGN_TEXT: Dict[TurnSign, str] = {
    TurnSign.U_TURN:       "Make a U-turn",
    TurnSign.SHARP_LEFT:   "Sharp left",
    TurnSign.LEFT:         "Turn left",
    TurnSign.SLIGHT_LEFT:  "Slight left",
    TurnSign.CONTINUE:     "Continue",
    TurnSign.SLIGHT_RIGHT: "Slight right",
    TurnSign.RIGHT:        "Turn right",
    TurnSign.SHARP_RIGHT:  "Sharp right",
    TurnSign.ARRIVE:       "Arrive",
    TurnSign.KEEP_LEFT:    "Keep left",
    TurnSign.KEEP_RIGHT:   "Keep right",
}


def sign_to_text(sign: TurnSign) -> str:
    return SIGN_TEXT.get(sign, "Continue")


def instruction_label(instruction: Instruction) -> str:
    """Service text, or a label built from the turn sign when the service left it empty."""
    if instruction.text and instruction.text.strip():
        return instruction.text
    label = sign_to_text(instruction.turn_sign)
    if instruction.street_name:
        return f"{label} onto {instruction.street_name}"
    return label


def fmt_distance_imperial(meters: float) -> str:
    """Feet (rounded to 25) below ~950 ft, then miles."""
    ft = meters * 3.28084
    if ft < 950:
        return f"{round(ft / 25) * 25} ft"
    mi = meters / 1609.344
    return f"{mi:.1f} mi" if mi < 10 else f"{round(mi)} mi"


def fmt_eta(seconds: float) -> str:
    minutes = max(0, round(seconds / 60))
    hours, mins = divmod(minutes, 60)
    return f"{hours} hr {mins} min" if hours else f"{minutes} min"


# ---------------------------------------------------------------------------
# Step preview
# ---------------------------------------------------------------------------

@dataclass
class StepPreview:
    """The current instruction plus up to two upcoming ones."""
    current: Optional[Instruction]
    next: Optional[Instruction] = None
    then: Optional[Instruction] = None

    def lines(self, step_remaining_m: Optional[float] = None) -> list:
        out = []
        if self.current is not None:
            dist = step_remaining_m if step_remaining_m is not None else self.current.distance_m
            out.append(f"{instruction_label(self.current)} ({fmt_distance_imperial(dist)})")
        if self.next is not None:
            out.append(f"Next: {instruction_label(self.next)} ({fmt_distance_imperial(self.next.distance_m)})")
        if self.then is not None:
            out.append(f"Then: {instruction_label(self.then)}")
        return out


def preview_steps(route: Route, step_index: int) -> StepPreview:
    steps = route.instructions
    if not steps:
        return StepPreview(current=None)
    i = max(0, min(step_index, len(steps) - 1))
    return StepPreview(
        current=steps[i],
        next=steps[i + 1] if i + 1 < len(steps) else None,
        then=steps[i + 2] if i + 2 < len(steps) else None,
    )


def remaining_from_steps(route: Route, step_index: int) -> float:
    """Remaining metres from instruction distances, for when no snap is available yet."""
    total = sum(s.distance_m for s in route.instructions[max(0, step_index):])
    return total or route.distance_m or 0.0
