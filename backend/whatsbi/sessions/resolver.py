"""
Session Resolver - decides which dataset an inbound message talks to.

Priority order for every message:

1. A switch keyword drops the current session and starts over.
2. An active session is refreshed and used as-is (the hot path).
3. Otherwise the authorized datasets are enumerated: none means no access,
   one is selected silently, several need a choice. The message itself is
   tried as that choice before the menu is sent.

The resolver takes no locks; atomicity per phone is the store's job.
"""

import logging
from typing import List, Optional

from ..models import AuthorizedNumber, AvailableDataset, Session, SessionResult
from .directory import AuthorizationDirectory
from .store import SessionStore

logger = logging.getLogger(__name__)

SWITCH_COMMANDS = frozenset({
    "trocar", "sair", "mudar", "voltar", "menu",
    "/trocar", "/sair", "/mudar", "/menu",
})

NUMBER_EMOJIS = ["1️⃣", "2️⃣", "3️⃣", "4️⃣", "5️⃣", "6️⃣", "7️⃣", "8️⃣", "9️⃣", "🔟"]

NO_ACCESS_MESSAGE = "❌ Seu número não tem acesso a nenhum sistema."


def is_switch_command(message: str) -> bool:
    return message.strip().casefold() in SWITCH_COMMANDS


def find_dataset_by_input(user_input: str, datasets: List[AvailableDataset]) -> Optional[AvailableDataset]:
    """
    Interpret ``user_input`` as a menu choice.

    A number in [1, N] picks by option number. Anything else is matched as a
    case-insensitive substring of dataset, context or connection name, and
    the first dataset in menu order that matches wins.
    """
    text = user_input.strip().casefold()
    if not text:
        return None

    # isdigit() accepts superscripts that int() rejects
    if text.isdecimal():
        number = int(text)
        if 1 <= number <= len(datasets):
            return next((d for d in datasets if d.option_number == number), None)

    for dataset in datasets:
        fields = (dataset.dataset_name, dataset.context_name, dataset.connection_name)
        if any(field and text in field.casefold() for field in fields):
            return dataset
    return None


def option_label(option_number: int) -> str:
    if 1 <= option_number <= len(NUMBER_EMOJIS):
        return NUMBER_EMOJIS[option_number - 1]
    return f"{option_number}."


def generate_selection_menu(datasets: List[AvailableDataset], user_name: Optional[str] = None) -> str:
    greeting = f"Olá, *{user_name}*! " if user_name else "Olá! "
    options = "\n".join(
        f"{option_label(d.option_number)} *{d.display_name}*" for d in datasets
    )
    return (
        f"{greeting}📊 Você tem acesso a múltiplos sistemas.\n\n"
        f"Qual deseja usar agora?\n\n"
        f"{options}\n\n"
        f"💡 *Responda com o número ou nome.*\n"
        f"🔄 Digite *trocar* a qualquer momento para mudar."
    )


def generate_selection_confirmation(dataset_name: str) -> str:
    return (
        f"✅ *{dataset_name}* selecionado!\n\n"
        f"Agora pode fazer suas perguntas. \n\n"
        f"💡 Digite *trocar* para mudar de sistema."
    )


def generate_single_dataset_notice(dataset_name: str) -> str:
    return f"🔄 Você só tem acesso a *{dataset_name}*. Continuando..."


def generate_footer(dataset_name: str) -> str:
    """Appended to every answer so the user knows which system replied."""
    return f"\n\n─────────────\n📊 *{dataset_name}* | _trocar_"


class SessionResolver:
    """Resolves (phone, message) to an active session or a message to send back."""

    def __init__(self, store: SessionStore, directory: AuthorizationDirectory):
        self.store = store
        self.directory = directory

    async def _select(self, phone: str, dataset: AvailableDataset) -> Session:
        return await self.store.upsert(phone, dataset)

    def _no_access(self) -> SessionResult:
        return SessionResult(has_session=False, menu_message=NO_ACCESS_MESSAGE)

    def _menu(self, datasets: List[AvailableDataset], user_name: Optional[str]) -> SessionResult:
        return SessionResult(
            has_session=False,
            needs_selection=True,
            available_datasets=datasets,
            menu_message=generate_selection_menu(datasets, user_name),
        )

    async def resolve(
        self,
        phone: str,
        message: str,
        authorized_number: Optional[AuthorizedNumber] = None,
    ) -> SessionResult:
        """
        Resolve the data context for one inbound message.

        Args:
            phone: Sender phone number (digits only)
            message: Raw message text
            authorized_number: Sender's authorization, used for the greeting

        Returns:
            SessionResult with either an active session, or a message to
            send back (menu, confirmation or no-access notice)
        """
        user_name = authorized_number.name if authorized_number else None

        if is_switch_command(message):
            await self.store.delete(phone)
            logger.info("Session cleared by switch command")

            datasets = await self.directory.list_available_datasets(phone)
            if not datasets:
                return self._no_access()
            if len(datasets) == 1:
                session = await self._select(phone, datasets[0])
                return SessionResult(has_session=True, session=session, available_datasets=datasets)
            return self._menu(datasets, user_name)

        session = await self.store.get_active(phone)
        if session is not None:
            refreshed = await self.store.touch(phone)
            return SessionResult(has_session=True, session=refreshed or session)

        datasets = await self.directory.list_available_datasets(phone)
        if not datasets:
            return self._no_access()

        if len(datasets) == 1:
            session = await self._select(phone, datasets[0])
            return SessionResult(has_session=True, session=session, available_datasets=datasets)

        chosen = find_dataset_by_input(message, datasets)
        if chosen is None:
            return self._menu(datasets, user_name)

        session = await self._select(phone, chosen)
        return SessionResult(
            has_session=True,
            session=session,
            available_datasets=datasets,
            menu_message=generate_selection_confirmation(chosen.display_name),
        )
