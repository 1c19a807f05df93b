"""
Skills library: learn, match, repair and run reusable code skills.
"""

from relay.skills.service import SkillRunResult, SkillService

__all__ = ["SkillRunResult", "SkillService"]
