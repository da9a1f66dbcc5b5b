"""
Assistant factory.

This module wires the assistant's components together: external tool
manager, built-in tool registry, tool router, turn engine, agent manager and
primary session controller.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..builtin import register_default_tools
from ..coordinator.agent_manager import AgentManager
from ..coordinator.session_controller import PrimarySessionController
from ..coordinator.turn_engine import ConversationTurnEngine
from ..core.interfaces import (
    CompletionBackend, ConfigurationSource, ContextProvider, DisplaySink,
    LoggingDisplaySink, PersistenceStore, SpeechSink
)
from ..core.models import AssistantSettings
from ..memory.persistence import InMemoryPersistenceStore
from ..registry.environment import ProjectEnvironment
from ..registry.tool_registry import BuiltInToolRegistry, ToolRuntime
from ..tools.declarations import ToolDeclarationBuilder
from ..tools.external_tool_manager import ConnectionFactory, ExternalToolManager
from ..tools.name_mapper import ToolNameMapper
from ..tools.router import BuiltInToolInvoker, ToolRouter
from ..tools.scope import ToolScopeSelector
from .config_loader import FileConfigurationSource
from .config_watcher import ConfigFileWatcher

logger = logging.getLogger(__name__)


class Assistant:
    """Container of wired assistant components."""

    def __init__(
        self,
        settings: AssistantSettings,
        environment: ProjectEnvironment,
        registry: BuiltInToolRegistry,
        external_tools: ExternalToolManager,
        scope_selector: ToolScopeSelector,
        runtime: ToolRuntime,
        engine: ConversationTurnEngine,
        agent_manager: AgentManager,
        session: PrimarySessionController,
        watcher: Optional[ConfigFileWatcher] = None
    ):
        self.settings = settings
        self.environment = environment
        self.registry = registry
        self.external_tools = external_tools
        self.scope_selector = scope_selector
        self.runtime = runtime
        self.engine = engine
        self.agent_manager = agent_manager
        self.session = session
        self.watcher = watcher

    async def start(self, wait_for_discovery: bool = False) -> None:
        """Load the external server configuration and start watching it."""
        await self.external_tools.refresh()
        if wait_for_discovery:
            await self.external_tools.wait_for_discovery()
        if self.watcher is not None:
            self.watcher.start()
        logger.info("Assistant started")

    async def shutdown(self) -> None:
        if self.watcher is not None:
            await self.watcher.stop()
        self.session.stop_processing()
        await self.session.wait()
        await self.agent_manager.shutdown()
        await self.external_tools.shutdown()
        logger.info("Assistant shutdown completed")


def create_assistant(
    backend: CompletionBackend,
    project_root: Optional[Union[str, Path]] = None,
    settings: Optional[AssistantSettings] = None,
    config_source: Optional[ConfigurationSource] = None,
    persistence: Optional[PersistenceStore] = None,
    display: Optional[DisplaySink] = None,
    speech: Optional[SpeechSink] = None,
    context_provider: Optional[ContextProvider] = None,
    connection_factory: Optional[ConnectionFactory] = None,
    registry: Optional[BuiltInToolRegistry] = None,
    watch_config: bool = False,
    extras: Optional[Dict[str, Any]] = None
) -> Assistant:
    """
    Build a fully wired assistant.

    Args:
        backend: Completion backend
        project_root: Project directory; used for environment detection, the
            external server config file and subprocess working directories
        settings: Assistant settings
        config_source: External server configuration; defaults to the file
            under ``project_root``
        persistence: Token and roster store; defaults to in-memory
        display: Display sink; defaults to logging
        speech: Optional speech sink for the primary session
        context_provider: Optional editor context for context injection
        connection_factory: Override for external connections (tests)
        registry: Registry with host tools; the default tools are added to it
        watch_config: Poll the config file and refresh on change
        extras: Host services exposed to built-in tools

    Returns:
        The wired assistant; call ``start()`` to load external servers
    """
    settings = settings or AssistantSettings()
    display = display or LoggingDisplaySink()
    persistence = persistence or InMemoryPersistenceStore()

    if config_source is None and project_root is not None:
        config_source = FileConfigurationSource(project_root, settings.config_relative_path)

    environment = ProjectEnvironment.detect(project_root, settings)
    registry = register_default_tools(registry or BuiltInToolRegistry())

    external_tools = ExternalToolManager(
        config_source=config_source,
        display=display,
        settings=settings,
        project_root=project_root,
        connection_factory=connection_factory,
    )
    scope_selector = ToolScopeSelector(settings.default_allow_all_tools)
    runtime = ToolRuntime(
        registry=registry,
        environment=environment,
        external_tools=external_tools,
        scope_selector=scope_selector,
        display=display,
        extras=extras,
    )

    mapper = ToolNameMapper()
    router = ToolRouter(BuiltInToolInvoker(registry), mapper, external_tools, display)
    engine = ConversationTurnEngine(
        backend=backend,
        router=router,
        declaration_builder=ToolDeclarationBuilder(registry, mapper),
        runtime=runtime,
        external_tools=external_tools,
        display=display,
        speech=speech,
    )

    agent_manager = AgentManager(engine, settings, persistence, display)
    agent_manager.restore()
    runtime.agent_manager = agent_manager

    session = PrimarySessionController(
        engine,
        settings=settings,
        scope_selector=scope_selector,
        agent_manager=agent_manager,
        persistence=persistence,
        context_provider=context_provider,
        display=display,
        speech=speech,
    )

    watcher = None
    if watch_config and isinstance(config_source, FileConfigurationSource):
        watcher = ConfigFileWatcher(config_source.path, external_tools.refresh)

    logger.info(f"Assistant created: {environment.signature()}, {len(registry.names())} built-in tools")
    return Assistant(
        settings=settings,
        environment=environment,
        registry=registry,
        external_tools=external_tools,
        scope_selector=scope_selector,
        runtime=runtime,
        engine=engine,
        agent_manager=agent_manager,
        session=session,
        watcher=watcher,
    )
