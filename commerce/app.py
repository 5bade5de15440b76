"""Application wiring: settings, stores, identity client and auth chain"""

from pathlib import Path
from typing import Optional

from .auth.guards import AuthorizationGuards
from .auth.tokens import TokenAuthenticator
from .core.config import ConfigManager, Settings
from .identity.client import RemoteIdentityClient
from .models.cart import Cart
from .models.order import Order
from .models.payment import Payment
from .models.product import Product
from .models.user import User
from .services.cart_store import CartStore
from .services.order_service import OrderService
from .services.order_store import OrderStore
from .services.payment_store import PaymentStore
from .services.product_store import ProductStore
from .services.user_store import UserStore
from .stores.file_store import FileStore
from .utils.logger import get_logger, setup_logger

logger = get_logger(__name__)


class CommerceApp:
    """Holds one instance of every collaborator; built once per process"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        identity_client: Optional[RemoteIdentityClient] = None,
    ):
        self.settings = settings
        self.identity_client = identity_client
        self.users: Optional[UserStore] = None
        self.products: Optional[ProductStore] = None
        self.orders: Optional[OrderStore] = None
        self.carts: Optional[CartStore] = None
        self.payments: Optional[PaymentStore] = None
        self.order_service: Optional[OrderService] = None
        self.authenticator: Optional[TokenAuthenticator] = None
        self.local_authenticator: Optional[TokenAuthenticator] = None
        self.guards: Optional[AuthorizationGuards] = None
        self._initialized = False

    def _file_store(self, collection: str, model) -> FileStore:
        storage = self.settings.storage
        return FileStore(
            Path(storage.data_dir) / f"{collection}.json",
            collection,
            model=model,
            schema_version=storage.schema_version,
            lock_timeout_seconds=storage.lock_timeout_seconds,
        )

    def initialize(self) -> "CommerceApp":
        """Load settings, set up logging and build every collaborator. Idempotent."""
        if self._initialized:
            return self
        if self.settings is None:
            self.settings = ConfigManager().load_settings()

        log = self.settings.logging
        setup_logger(
            log_level=log.level,
            log_format=log.format,
            file_path=log.file_path,
            max_bytes=log.max_bytes,
            backup_count=log.backup_count,
        )
        logger.info(
            "Configuration loaded",
            app_name=self.settings.app.name,
            version=self.settings.app.version,
            environment=self.settings.app.environment,
            services=self.settings.server.services,
        )

        self.users = UserStore(self._file_store("users", User))
        self.products = ProductStore(self._file_store("products", Product))
        self.orders = OrderStore(self._file_store("orders", Order))
        self.carts = CartStore(self._file_store("carts", Cart))
        self.payments = PaymentStore(self._file_store("payments", Payment))
        for store in (self.users, self.products, self.orders, self.carts, self.payments):
            store.initialize()

        self.order_service = OrderService(
            self.orders, self.products, reserve_stock=self.settings.orders.reserve_stock
        )

        auth = self.settings.auth
        if self.identity_client is None and auth.remote_verification:
            ids = self.settings.identity_service
            self.identity_client = RemoteIdentityClient(
                base_url=ids.base_url,
                timeout_seconds=ids.timeout_seconds,
                max_retries=ids.max_retries,
                retry_delay_seconds=ids.retry_delay_seconds,
            )

        self.authenticator = TokenAuthenticator(
            auth.jwt_secret,
            identity_client=self.identity_client if auth.remote_verification else None,
            algorithms=[auth.jwt_algorithm],
            leeway_seconds=auth.leeway_seconds,
        )
        # The identity service is the authority for its own tokens
        self.local_authenticator = TokenAuthenticator(
            auth.jwt_secret,
            algorithms=[auth.jwt_algorithm],
            leeway_seconds=auth.leeway_seconds,
        )
        self.guards = AuthorizationGuards(
            self.identity_client if auth.remote_verification else None,
            admin_role=auth.admin_role,
        )

        self._initialized = True
        logger.info("Commerce application initialized", data_dir=self.settings.storage.data_dir)
        return self

    def seed_admin(self) -> None:
        users = self.settings.users
        if users.seed_admin:
            self.users.ensure_seed_admin(users.admin_email, users.admin_password)
