"""Spotlight on-screen elements the user asked about."""

from dataclasses import dataclass, field
from typing import Callable, Optional

from soprano.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ElementBounds:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class ElementDefinition:
    id: str
    label: str
    description: str
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class RegisteredElement:
    """An element a mounted screen can highlight.

    ``measure`` returns the element's current window bounds, or None when
    it is not laid out.
    """

    id: str
    label: str
    description: str
    screen_name: str
    measure: Callable[[], Optional[ElementBounds]] = field(compare=False, repr=False)
    keywords: tuple[str, ...] = ()


SCREEN_ELEMENTS: dict[str, tuple[ElementDefinition, ...]] = {
    "Dashboard": (
        ElementDefinition("pay-button", "Pay", "Make a UPI payment", ("pay", "send", "money", "transfer", "payment", "upi")),
        ElementDefinition("scan-button", "Scan", "Scan QR code for payment", ("scan", "qr", "code", "camera")),
        ElementDefinition(
            "history-button",
            "History",
            "View transaction history",
            ("history", "transaction", "transactions", "past", "previous", "view"),
        ),
        ElementDefinition("more-button", "More", "More options", ("more", "options", "settings", "menu")),
        ElementDefinition("balance-card", "Balance", "View account balance", ("balance", "account", "money", "funds")),
        ElementDefinition(
            "transactions-list", "Recent Transactions", "View recent transactions", ("recent", "transactions", "activity")
        ),
    ),
    "Transactions": (
        ElementDefinition("transactions-list", "Transaction List", "View all transactions", ("transactions", "list", "all", "view")),
    ),
    "UPIPayment": (
        ElementDefinition("upi-id-field", "UPI ID", "Enter recipient UPI ID", ("upi", "id", "recipient", "enter")),
        ElementDefinition("amount-field", "Amount", "Enter payment amount", ("amount", "money", "enter", "rupees")),
        ElementDefinition("note-field", "Note", "Add payment note", ("note", "message", "description")),
        ElementDefinition(
            "continue-button", "Continue", "Proceed to payment confirmation", ("continue", "proceed", "next", "submit")
        ),
    ),
    "UPIConfirm": (
        ElementDefinition("confirm-button", "Confirm Payment", "Confirm and complete payment", ("confirm", "complete", "finish", "pay")),
    ),
}


def get_elements_for_screen(screen_name: str) -> tuple[ElementDefinition, ...]:
    return SCREEN_ELEMENTS.get(screen_name, ())


def has_visual_guidance(screen_name: str) -> bool:
    return screen_name in SCREEN_ELEMENTS


def available_elements(screen_name: str) -> dict[str, str]:
    """Element id to description for the model's prompt."""
    return {element.id: element.description for element in get_elements_for_screen(screen_name)}


class VisualGuideCoordinator:
    def __init__(self):
        self._registry: dict[str, RegisteredElement] = {}
        self.active_element_id: Optional[str] = None
        self.instruction: str = ""
        self.element_bounds: Optional[ElementBounds] = None
        self.is_guiding: bool = False

    @property
    def registry(self) -> tuple[RegisteredElement, ...]:
        return tuple(self._registry.values())

    def show(self, element_id: str, instruction: str, screen_name: Optional[str] = None) -> bool:
        """Highlight ``element_id``; returns False when it cannot be shown."""
        logger.info(f"Showing guide for element: {element_id}")

        element = self._registry.get(element_id)
        if element is None or (screen_name is not None and element.screen_name != screen_name):
            logger.warning(f"Element not found in registry: {element_id}")
            return False

        bounds = element.measure()
        if bounds is None:
            logger.warning(f"Element is not laid out: {element_id}")
            return False

        logger.debug(f"Element position: {bounds}")
        self.element_bounds = bounds
        self.active_element_id = element_id
        self.instruction = instruction
        self.is_guiding = True
        return True

    def hide(self) -> None:
        logger.debug("Hiding guide")
        self.is_guiding = False
        self.active_element_id = None
        self.instruction = ""
        self.element_bounds = None

    def register_element(self, element: RegisteredElement) -> None:
        logger.debug(f"Registering element: {element.id} for screen: {element.screen_name}")
        self._registry[element.id] = element

    def unregister_element(self, element_id: str) -> None:
        logger.debug(f"Unregistering element: {element_id}")
        self._registry.pop(element_id, None)

    def clear_registry(self) -> None:
        logger.debug("Clearing element registry")
        self._registry.clear()

    def find_element_by_keywords(self, query: str, current_screen: str) -> Optional[RegisteredElement]:
        lower_query = query.lower()
        for element in self._registry.values():
            if element.screen_name != current_screen:
                continue
            if any(keyword.lower() in lower_query for keyword in element.keywords):
                logger.debug(f"Found matching element: {element.id}")
                return element

        logger.debug("No matching element found")
        return None
