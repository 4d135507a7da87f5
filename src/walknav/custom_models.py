# custom_models.py
# Routing-service weighting presets per walking profile.
# A custom model is plain JSON; keep the type loose.

import copy
from typing import Any, Dict, Optional

from .models import Profile

CustomModel = Dict[str, Any]

# Stock foot weighting, no override
CM_FASTEST_FOOT: Optional[CustomModel] = None

CM_BALANCED_FOOT: CustomModel = {
    "priority": [],
    "speed": [],
}

CM_COOL_FOOT_V1: CustomModel = {
    "priority": [],
    "speed": [],
}

PROFILE_MODELS: Dict[Profile, Optional[CustomModel]] = {
    Profile.FAST:     CM_FASTEST_FOOT,
    Profile.BALANCED: CM_BALANCED_FOOT,
    Profile.COOL:     CM_COOL_FOOT_V1,
}


def custom_model_for(profile: Profile) -> Optional[CustomModel]:
    """Fresh copy of the preset for a profile (None = stock weighting)."""
    model = PROFILE_MODELS.get(profile)
    return copy.deepcopy(model) if model is not None else None
