import os, sys, pytest
# Ensure the backend directory is on path so 'commerce_rbac' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from commerce_rbac import create_app, get_db
from commerce_rbac.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import commerce_rbac.models.product  # noqa: F401
import commerce_rbac.models.order  # noqa: F401
import commerce_rbac.models.cart_item  # noqa: F401
import commerce_rbac.models.notification  # noqa: F401
import commerce_rbac.models.setting  # noqa: F401
import commerce_rbac.models.inventory  # noqa: F401
import commerce_rbac.models.payment  # noqa: F401
import commerce_rbac.models.bulk_order  # noqa: F401
import commerce_rbac.models.audit  # noqa: F401


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({
        'TESTING': True,
        'AUDIT_ASYNC': False,
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
    })
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
