from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ficqueue.store.models import ConfigEntry


class ConfigStore:
    """Key/value settings managed at runtime, such as channel ids."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    async def get(self, key: str) -> Optional[str]:
        async with self._sessions() as session:
            entry = await session.get(ConfigEntry, key)
            return entry.value if entry is not None else None

    async def set(self, key: str, value: str):
        async with self._sessions() as session:
            entry = await session.get(ConfigEntry, key)
            if entry is None:
                session.add(ConfigEntry(key=key, value=value))
            else:
                entry.value = value
            await session.commit()
