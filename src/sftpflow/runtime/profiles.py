from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from sftpflow.exception import ResolverMissingKeyError, ResolverSyntaxError, SpecError
from sftpflow.resolution import resolve_profile_templates
from sftpflow.runtime.settings import Settings
from sftpflow.spec import ProfilesFileSpec, ServerProfile

log = logging.getLogger("sftpflow.runtime.profiles")


def parse_profiles(raw: Any, *, env: Mapping[str, str] | None = None) -> Dict[str, ServerProfile]:
    """Validate a raw profiles document (mapping id -> profile fields).

    String values may reference the environment with {{env.VAR}} / {{env.VAR:DEFAULT}}.
    """
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise SpecError(f"Profiles document must be a mapping of id -> profile, got {type(raw).__name__}")
    env_snapshot = {k: str(v) for k, v in os.environ.items()} if env is None else env
    rendered = resolve_profile_templates(raw, env_snapshot)
    try:
        return dict(ProfilesFileSpec.model_validate(rendered).root)
    except ValidationError as e:
        raise SpecError(f"Invalid profile configuration: {e}") from e


def load_profiles(settings: Settings, *, env: Mapping[str, str] | None = None) -> Dict[str, ServerProfile]:
    """Load the profile registry named by settings (YAML file or inline JSON).

    Returns an empty registry when neither source is configured.
    """
    if settings.profiles_file and settings.profiles_json:
        raise SpecError("Set only one of SFTPFLOW_PROFILES_JSON or SFTPFLOW_PROFILES_FILE")

    if settings.profiles_json:
        try:
            raw = json.loads(settings.profiles_json)
        except json.JSONDecodeError as e:
            raise SpecError(f"Invalid SFTPFLOW_PROFILES_JSON: {e}") from e
        source = "json"
    elif settings.profiles_file:
        try:
            with open(settings.profiles_file, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise SpecError(f"Invalid profiles file {settings.profiles_file}: {e}") from e
        source = settings.profiles_file
    else:
        return {}

    try:
        profiles = parse_profiles(raw, env=env)
    except (ResolverMissingKeyError, ResolverSyntaxError):
        log.error("profile templating failed source=%s", source)
        raise
    log.debug("loaded %d profile(s) from %s", len(profiles), source)
    return profiles
