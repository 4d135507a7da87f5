from walknav.guidance import (
    fmt_distance_imperial,
    fmt_eta,
    instruction_label,
    preview_steps,
    remaining_from_steps,
)
from walknav.models import Instruction, TurnSign

from conftest import build_meridian_route


def _instruction(text="", sign=TurnSign.CONTINUE, street=None):
    return Instruction(distance_m=10, duration_ms=0, text=text, turn_sign=sign,
                       interval=(0, 1), street_name=street)


def test_label_prefers_service_text():
    assert instruction_label(_instruction("Turn left onto Red River St", TurnSign.LEFT)) == \
        "Turn left onto Red River St"


def test_label_built_from_sign_and_street():
    assert instruction_label(_instruction("", TurnSign.KEEP_RIGHT, "Lamar Blvd")) == "Keep right onto Lamar Blvd"
    assert instruction_label(_instruction("  ", TurnSign.U_TURN)) == "Make a U-turn"


def test_fmt_distance_imperial():
    assert fmt_distance_imperial(100) == "325 ft"
    assert fmt_distance_imperial(1000) == "0.6 mi"
    assert fmt_distance_imperial(20_000) == "12 mi"


def test_fmt_eta():
    assert fmt_eta(600) == "10 min"
    assert fmt_eta(3900) == "1 hr 5 min"
    assert fmt_eta(-5) == "0 min"


def test_preview_steps_near_end_of_route():
    route = build_meridian_route([100, 200, 150])

    preview = preview_steps(route, 1)

    assert preview.current is route.instructions[1]
    assert preview.next is route.instructions[2]
    assert preview.then is None
    assert preview.lines(step_remaining_m=30) == ["Walk 200 m (100 ft)", "Next: Walk 150 m (500 ft)"]


def test_remaining_from_steps():
    route = build_meridian_route([100, 200, 150])

    assert remaining_from_steps(route, 0) == 450
    assert remaining_from_steps(route, 2) == 150
