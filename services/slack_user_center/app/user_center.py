"""The Slack user center: one instance per process, shared by every request."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Mapping

from .cache import DIRECTORY_USERS_KEY, CorrelationCache
from .clients import DirectoryBinding, SlackDirectoryClient
from .config import Settings, UserCenterConfig
from .dispatcher import NotificationDispatcher
from .errors import SlackAPIError
from .handshake import LoginHandshake
from .preferences import InMemoryPreferenceStore, PreferenceSource
from .schemas import DirectoryUser, UserCenterBasicUserInfo, UserStatus, directory_status
from .sync import DirectorySync

logger = logging.getLogger(__name__)

ClientFactory = Callable[[UserCenterConfig, str], SlackDirectoryClient]


class SlackUserCenter:
    """Own the configuration binding and wire the handshake, sync and dispatcher.

    Construction order is explicit: settings give the initial config, the
    config gives a directory client, and the scheduler is only started by
    :meth:`start`. Reconfiguration swaps the whole binding; requests already
    running keep the binding they started with.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        cache: CorrelationCache | None = None,
        preferences: PreferenceSource | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory or self._default_client
        self._binding_lock = threading.Lock()
        self._retired_clients: list[SlackDirectoryClient] = []
        self._retirements: set[asyncio.Task[None]] = set()
        self._binding = self._bind(settings.initial_config(), settings.bot_token)

        self.cache = cache if cache is not None else CorrelationCache(settings.login_ttl_seconds)
        self.preferences = preferences if preferences is not None else InMemoryPreferenceStore()
        self.handshake = LoginHandshake(
            self.cache,
            self.current_binding,
            authorize_url=settings.authorize_url,
            scopes=settings.oauth_scopes,
            ttl_seconds=settings.login_ttl_seconds,
            auth_failed_path=settings.auth_failed_path,
        )
        self.directory_sync = DirectorySync(
            self.cache,
            self.current_binding,
            interval_seconds=settings.sync_interval_seconds,
            cache_ttl_seconds=settings.directory_ttl(),
        )
        self.dispatcher = NotificationDispatcher(self.current_binding, self.preferences)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> UserCenterConfig:
        return self._binding.config

    def current_binding(self) -> DirectoryBinding:
        return self._binding

    def reconfigure(self, raw: bytes | str | Mapping[str, Any] | UserCenterConfig) -> UserCenterConfig:
        """Replace the configuration and client wholesale.

        The shared access token is carried over while the Slack application
        stays the same; switching to another client id starts from the bot
        token again.
        """

        config = raw if isinstance(raw, UserCenterConfig) else UserCenterConfig.parse(raw)
        with self._binding_lock:
            previous = self._binding
            token = self._settings.bot_token
            if previous.config.client_id == config.client_id and previous.client.access_token:
                token = previous.client.access_token
            self._binding = self._bind(config, token)
            self._retired_clients.append(previous.client)
        self._schedule_retirement(previous.client)
        logger.info(
            "User center reconfigured",
            extra={"auto_sync": config.auto_sync, "notification": config.notification},
        )
        return config

    def after_login(self, external_id: str, session_token: str) -> None:
        self.handshake.after_login(external_id, session_token)

    async def user_status(self, external_id: str) -> UserStatus:
        if not external_id:
            return UserStatus.available
        try:
            user = await self._binding.client.get_user_detail(external_id)
        except SlackAPIError as exc:
            logger.error("Failed to get Slack user detail info: %s", exc)
            return UserStatus.deleted
        return directory_status(user)

    async def user_info(self, external_id: str) -> UserCenterBasicUserInfo:
        try:
            user = await self._binding.client.get_user_detail(external_id)
        except SlackAPIError as exc:
            logger.error("get Slack user detail info failed: %s", exc)
            return UserCenterBasicUserInfo(external_id=external_id, status=UserStatus.deleted)
        return UserCenterBasicUserInfo.from_directory(user)

    def cached_users(self) -> list[DirectoryUser] | None:
        return self.cache.get(DIRECTORY_USERS_KEY)

    def user_list(self, external_ids: list[str]) -> list[UserCenterBasicUserInfo]:
        """Resolve ids against the synced directory; unknown ids are left out."""

        users = {user.id: user for user in self.cached_users() or []}
        return [
            UserCenterBasicUserInfo.from_directory(users[external_id])
            for external_id in external_ids
            if external_id in users
        ]

    async def start(self) -> None:
        await self.directory_sync.start()

    async def aclose(self) -> None:
        await self.directory_sync.stop()
        pending = list(self._retirements)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        with self._binding_lock:
            clients = [*self._retired_clients, self._binding.client]
            self._retired_clients = []
        for client in clients:
            await client.aclose()

    def _schedule_retirement(self, client: SlackDirectoryClient) -> None:
        """Close ``client`` once the grace period has passed.

        Outside a running event loop the client simply waits for
        :meth:`aclose`.
        """

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._close_after_grace(client))
        self._retirements.add(task)
        task.add_done_callback(self._retirements.discard)

    async def _close_after_grace(self, client: SlackDirectoryClient) -> None:
        await asyncio.sleep(self._settings.client_grace_seconds)
        with self._binding_lock:
            if client not in self._retired_clients:
                return
            self._retired_clients.remove(client)
        await client.aclose()
        logger.debug("Closed retired Slack client")

    def _bind(self, config: UserCenterConfig, access_token: str) -> DirectoryBinding:
        return DirectoryBinding(config=config, client=self._client_factory(config, access_token))

    def _default_client(self, config: UserCenterConfig, access_token: str) -> SlackDirectoryClient:
        return SlackDirectoryClient(
            config,
            base_url=self._settings.api_base_url,
            timeout=self._settings.http_timeout,
            access_token=access_token,
        )
