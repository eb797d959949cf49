import pytest

from ecofinds.Middleware.audit_middleware import _write_request_log, classify_path
from ecofinds.models.audit_log import AuditLog
from ecofinds.services.audit_log_service import AuditLogService


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/products/12/favorite", ("products", 12)),
        ("/cart", ("cart", None)),
        ("/admin/users/7/status", ("admin", 7)),
        ("/", ("http", None)),
    ],
)
def test_classify_path(path, expected):
    assert classify_path(path) == expected


def test_uncommitted_log_rolls_back_with_caller(db_session):
    AuditLogService().create_log(
        db=db_session, action="product.status", resource_type="product", commit=False
    )
    db_session.rollback()
    assert db_session.query(AuditLog).count() == 0


def test_unknown_request_field_is_rejected(db_session):
    with pytest.raises(TypeError):
        AuditLogService().create_log(
            db=db_session, action="x", resource_type="y", referer="z"
        )


def test_request_log_drops_stale_user(db_session, make_user):
    user = make_user()
    _write_request_log(
        {
            "user_id": 999,
            "resource_type": "products",
            "resource_id": 4,
            "request_method": "GET",
            "request_path": "/products/4",
            "status": "success",
            "status_code": 200,
        }
    )
    _write_request_log(
        {
            "user_id": user.id,
            "resource_type": "cart",
            "resource_id": None,
            "request_method": "POST",
            "request_path": "/cart/add",
            "status": "failure",
            "status_code": 400,
        }
    )
    logs = AuditLogService().get_logs(db_session, action="http.request")
    by_path = {log.request_path: log for log in logs}
    assert by_path["/products/4"].user_id is None
    assert by_path["/cart/add"].user_id == user.id
    assert AuditLogService().get_logs(db_session, resource_type="cart")[0].status == "failure"
