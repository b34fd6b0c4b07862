"""Services module - Business logic layer"""

from .action_parser import ParsedProposal, ParseStatus, parse_model_output
from .apply_coordinator import ApplyCoordinator
from .config_manager import ConfigManager
from .llm_service import LLMService
from .patch_engine import PatchEngine
from .proposal_builder import ProposalBuilder
from .version_trail import VersionTrail
from .workspace import Workspace

__all__ = [
    "ApplyCoordinator",
    "ConfigManager",
    "LLMService",
    "ParsedProposal",
    "ParseStatus",
    "PatchEngine",
    "ProposalBuilder",
    "VersionTrail",
    "Workspace",
    "parse_model_output",
]
