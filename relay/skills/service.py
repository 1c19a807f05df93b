"""
Skill learning, matching, repair and self-healing execution.

Every model call goes through the Fallback Orchestrator; JSON answers are
recovered with ``extract_json`` because providers do not always honor JSON
mode.
"""

import logging
import re
from typing import Any, NamedTuple, Optional, Sequence

from relay.models.conversation import ConversationTurn
from relay.models.policy import ExecutionRequest, PolicySettings
from relay.models.records import ExecutionPlan, Skill
from relay.orchestration.fallback import FallbackOrchestrator
from relay.parsing.json_extractor import extract_json
from relay.resilience.errors import MalformedOutputError
from relay.stores import Sandbox

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:javascript|js|python|py)?\n([\s\S]*?)```")
LEARN_PREFIX = "learn how to"


class SkillRunResult(NamedTuple):
    result: Any
    code: str
    healed: bool


class SkillService:
    """Application-level skill features built on the orchestrator."""

    LEARN_INSTRUCTION = (
        "You are a Self-Upgrade AI Module. "
        'Return JSON { "skillName": "", "description": "", "code": "" }.'
    )
    URL_LEARN_INSTRUCTION = (
        "You are an Advanced Learning Module. You extract skills from URLs "
        "(videos, GitHub repositories, documentation, articles) and convert them "
        "into executable code. Return strictly JSON."
    )
    FIX_INSTRUCTION = (
        "You are an AI Code Doctor. Fix the code based on the error. "
        "Return ONLY the fixed code string. Do NOT use Markdown formatting like ```. "
        "Do NOT explain. Just the code."
    )

    def __init__(self, orchestrator: FallbackOrchestrator):
        self.orchestrator = orchestrator

    async def _ask(
        self,
        prompt: str,
        policy: PolicySettings,
        system_instruction: Optional[str] = None,
        json_mode: bool = False,
    ) -> str:
        result = await self.orchestrator.execute(
            ExecutionRequest(
                prompt=prompt,
                policy=policy,
                system_instruction=system_instruction,
                json_mode=json_mode,
            )
        )
        return result.text

    @staticmethod
    def _skill_from_json(payload: Any) -> Skill:
        if not isinstance(payload, dict) or not payload.get("skillName") or not payload.get("code"):
            raise MalformedOutputError("Skill response is missing skillName or code")
        return Skill(
            name=payload["skillName"],
            description=payload.get("description", ""),
            code=payload["code"],
        )

    async def learn_new_skill(self, prompt: str, policy: PolicySettings) -> Skill:
        text = await self._ask(prompt, policy, self.LEARN_INSTRUCTION, json_mode=True)
        skill = self._skill_from_json(extract_json(text))
        logger.info(f"Learned skill: {skill.name}")
        return skill

    @staticmethod
    def build_url_learning_prompt(prompt_with_url: str) -> str:
        if "youtube.com" in prompt_with_url or "youtu.be" in prompt_with_url:
            return (
                f'Analyze this YouTube video URL context: "{prompt_with_url}".\n'
                "Infer the technical skill or coding task demonstrated in the video.\n"
                "Create a function (skill) that performs this task. If the video is a "
                "tutorial, write code that implements the tutorial's outcome.\n"
                'Return JSON { "skillName": "", "description": "", "code": "" }.'
            )
        if "github.com" in prompt_with_url:
            return (
                f'Analyze this GitHub URL: "{prompt_with_url}".\n'
                "1. If it matches a well-known library or file, infer the logic from your training data.\n"
                "2. If it is a repository link, implement its primary feature as a standalone function.\n"
                "3. If it is a specific file link, recreate that file's logic as a function.\n"
                '4. Return JSON { "skillName": "", "description": "", "code": "" }.'
            )
        return (
            f'Analyze this website/article URL context: "{prompt_with_url}".\n'
            "1. Identify the core technical tutorial, algorithm or task it describes.\n"
            "2. Use what you know about this URL or the topic its slug suggests.\n"
            "3. Create a function (skill) that implements the technique.\n"
            '4. Return JSON { "skillName": "", "description": "", "code": "" }.'
        )

    async def learn_skill_from_url(self, prompt_with_url: str, policy: PolicySettings) -> Skill:
        text = await self._ask(
            self.build_url_learning_prompt(prompt_with_url),
            policy,
            self.URL_LEARN_INSTRUCTION,
            json_mode=True,
        )
        return self._skill_from_json(extract_json(text))

    async def fix_skill_code(self, broken_code: str, error_message: str, policy: PolicySettings) -> str:
        prompt = (
            "THE CODE FAILED.\n"
            f'ERROR: "{error_message}"\n\n'
            f"BROKEN CODE:\n{broken_code}\n\n"
            "Fix it so it runs in an isolated sandbox with no UI access."
        )
        fixed = await self._ask(prompt, policy, self.FIX_INSTRUCTION)
        match = _CODE_FENCE.search(fixed)
        if match:
            fixed = match.group(1)
        return fixed.replace("```", "").strip()

    async def find_and_prepare_skill_execution(
        self, prompt: str, skills: Sequence[Skill], policy: PolicySettings
    ) -> Optional[ExecutionPlan]:
        """Ask the model whether ``prompt`` should run one of ``skills``."""
        if not skills:
            return None
        names = [s.name for s in skills]
        try:
            text = await self._ask(
                f'Match skill: "{prompt}"\nSkills: {names}\n'
                'Return JSON { "match": true, "skillName": "", "args": [] }',
                policy,
                json_mode=True,
            )
            result = extract_json(text)
        except Exception as e:
            logger.warning(f"Skill matching failed: {e}")
            return None

        if not isinstance(result, dict) or not result.get("match"):
            return None
        skill = next((s for s in skills if s.name == result.get("skillName")), None)
        if skill is None:
            return None
        return ExecutionPlan(skill_name=skill.name, code=skill.code, args=result.get("args") or [])

    async def propose_skill_from_history(
        self, history: Sequence[ConversationTurn], policy: PolicySettings
    ) -> Optional[Skill]:
        recent = "\n".join(t.text for t in history[-5:])
        try:
            proposal = await self._ask(
                f'Suggest skill from chat? Return "learn how to..." or "NO".\n{recent}', policy
            )
            if "NO" in proposal or not proposal.lower().startswith(LEARN_PREFIX):
                return None
            return await self.learn_new_skill(proposal, policy)
        except Exception as e:
            logger.warning(f"Skill proposal failed: {e}")
            return None

    async def initiate_self_upgrade(self, skills: Sequence[Skill], policy: PolicySettings) -> Skill:
        proposal = await self._ask(
            f"Propose skill from: {[s.name for s in skills]}. "
            'Return string "learn how to...".',
            policy,
        )
        learn_prompt = proposal.strip()
        if not learn_prompt.lower().startswith(LEARN_PREFIX):
            raise MalformedOutputError(f"Invalid self-upgrade proposal: {learn_prompt[:80]!r}")
        return await self.learn_new_skill(learn_prompt, policy)

    async def execute_with_self_healing(
        self, plan: ExecutionPlan, sandbox: Sandbox, policy: PolicySettings
    ) -> SkillRunResult:
        """
        Run ``plan`` in the sandbox; on failure ask for a fix and retry once.

        Raises the retry's error when the repaired code fails too.
        """
        try:
            result = await sandbox.run(plan.code, plan.args)
            return SkillRunResult(result=result, code=plan.code, healed=False)
        except Exception as e:
            logger.warning(f"Skill {plan.skill_name} failed, attempting repair: {e}")
            fixed_code = await self.fix_skill_code(plan.code, str(e), policy)

        result = await sandbox.run(fixed_code, plan.args)
        logger.info(f"Skill {plan.skill_name} repaired")
        return SkillRunResult(result=result, code=fixed_code, healed=True)
