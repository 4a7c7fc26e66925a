import os, sys, pytest
# Ensure backend directory is on path so 'orderflow' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from sqlalchemy import delete
from orderflow import create_app, get_db
from orderflow.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import orderflow.models.menu_item  # noqa: F401
import orderflow.models.setting  # noqa: F401
import orderflow.models.order  # noqa: F401
from orderflow.models.order import Order, Report
from orderflow.models.setting import Setting, Counter


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
        # handlers run in the publishing thread so assertions see events immediately
        'EVENT_DISPATCH': 'inline',
        'CUSTOMER_ORDERING_DEFAULT': False,
        'EVENT_STREAM_HEARTBEAT': 0.05,
        'TESTING': True,
    })
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture(autouse=True)
def clean_orders(app_instance):
    """Every test starts with no orders, reports, settings or counters."""
    session = get_db()
    session.rollback()
    for model in (Report, Order, Setting, Counter):
        session.execute(delete(model))
    session.commit()
    session.close()
    yield
    get_db().rollback()


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
