from chatorder.models.tenant import Tenant
from chatorder.models.catalog_item import CatalogItem
from chatorder.models.product_upsell import ProductUpsell
from chatorder.models.conversation_session import ConversationSession
from chatorder.models.working_cart import WorkingCart
from chatorder.models.attempt_counter import AttemptCounter
from chatorder.models.order import Order
from chatorder.models.intent_override_rule import IntentOverrideRule
from chatorder.models.intent_event import IntentEvent
from chatorder.models.ai_config import AIConfig
from chatorder.models.ai_message_log import AIMessageLog
from chatorder.models.processed_message import ProcessedMessage
