import json
from pathlib import Path
from typing import List

from pydantic import ValidationError as PydanticValidationError

from screening.models.models import Profile
from screening.utils.exceptions import ConfigurationError
from screening.utils.logging_config import get_logger

logger = get_logger(__name__)


def load_profiles(path: str, limit: int = 1000) -> List[Profile]:
    """
    Load the first ``limit`` form submissions from a JSON array file, in file
    order. Ids are derived from name and email unless the record has one.
    """
    p = Path(path)
    if not p.is_file():
        raise ConfigurationError(f"Profile data file not found: {path}", config_key="PROFILES_PATH", config_value=path)

    try:
        records = json.loads(p.read_text(encoding="utf-8"))
    except ValueError as e:
        raise ConfigurationError(f"Profile data file is not valid JSON: {path}", config_key="PROFILES_PATH",
                                 config_value=path, cause=e) from e
    if not isinstance(records, list):
        raise ConfigurationError("Profile data file must contain a JSON array", config_key="PROFILES_PATH",
                                 config_value=path)

    try:
        profiles = [Profile.model_validate(r) for r in records[:limit]]
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid profile record in {path}: {e.error_count()} error(s)",
                                 config_key="PROFILES_PATH", config_value=path, cause=e) from e

    logger.info(f"Loaded {len(profiles)} of {len(records)} profiles from {path}")
    return profiles
