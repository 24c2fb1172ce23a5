"""
quantumflow/loader.py - YAML threshold profile loader

Profiles are declared in YAML and validated against the ThresholdProfile
schema before use:

    schema_version: "1.0"
    profiles:
      streaming:
        description: Low-latency media frames
        constructive_threshold: 0.72
        destructive_threshold: 0.28
        amplification_factor: 1.35
        suppression_factor: 0.12
"""
from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Any

import yaml

from .interference import InterferenceOptimizer
from .types import ThresholdProfile

BUILTIN_PROFILE_FILE = "thresholds.yaml"


class ProfileLoader:
    """Load and manage threshold profiles from YAML definitions.

    Example:
        loader = ProfileLoader()
        loader.load_builtin()
        loader.load_file("profiles/site.yaml")

        optimizer = InterferenceOptimizer(profiles=loader.profiles)
        optimizer.load_threshold_profile("streaming")
    """

    def __init__(self):
        self.profiles: dict[str, ThresholdProfile] = {}
        self.sources: dict[str, str] = {}

    def load_file(self, path: str | Path) -> dict[str, ThresholdProfile]:
        """Load profiles from a YAML file.

        Args:
            path: Path to YAML file

        Returns:
            Profiles defined in that file
        """
        path = Path(path)
        with open(path) as f:
            raw = yaml.safe_load(f)
        return self._register(raw, str(path))

    def load_string(self, text: str, source: str = "<string>") -> dict[str, ThresholdProfile]:
        return self._register(yaml.safe_load(text), source)

    def load_builtin(self) -> dict[str, ThresholdProfile]:
        """Load the profiles packaged with quantumflow."""
        text = resources.files("quantumflow").joinpath("profiles").joinpath(BUILTIN_PROFILE_FILE).read_text()
        return self.load_string(text, f"quantumflow:{BUILTIN_PROFILE_FILE}")

    def _register(self, raw: Any, source: str) -> dict[str, ThresholdProfile]:
        parsed = self._parse_profiles(raw)
        for name, profile in parsed.items():
            self.profiles[name] = profile
            self.sources[name] = source
        return parsed

    def _parse_profiles(self, raw: Any) -> dict[str, ThresholdProfile]:
        """Parse raw YAML into validated profiles."""
        if not isinstance(raw, dict) or "profiles" not in raw:
            raise ValueError("Profile document must contain a 'profiles' mapping")

        parsed: dict[str, ThresholdProfile] = {}
        for name, body in (raw.get("profiles") or {}).items():
            if not isinstance(body, dict):
                raise ValueError(f"Profile '{name}' must be a mapping")
            try:
                parsed[name] = ThresholdProfile(
                    name=name,
                    description=body.get("description", ""),
                    constructive_threshold=body["constructive_threshold"],
                    destructive_threshold=body["destructive_threshold"],
                    amplification_factor=body["amplification_factor"],
                    suppression_factor=body["suppression_factor"],
                )
            except KeyError as e:
                raise ValueError(f"Profile '{name}' is missing {e}") from e
        return parsed

    def get_profile(self, name: str) -> ThresholdProfile | None:
        return self.profiles.get(name)

    def apply_to(self, optimizer: InterferenceOptimizer) -> None:
        """Register every loaded profile with an optimizer."""
        for profile in self.profiles.values():
            optimizer.register_profile(profile)

    def dump(self) -> str:
        """Serialize loaded profiles back to YAML."""
        doc = {
            "schema_version": "1.0",
            "profiles": {
                name: profile.model_dump(exclude={"name"})
                for name, profile in self.profiles.items()
            },
        }
        return yaml.safe_dump(doc, sort_keys=False)
