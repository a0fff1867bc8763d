import threading
import uuid
from typing import Dict, Optional

import structlog
from flask import Flask, jsonify, request, session as client_session

from config import Settings
from core.errors import (
    OrderingError, OrderNotFound, PolicyDenied, RemoteError, ValidationError
)
from core.ordering_session import OrderingSession, make_actor
from database.connection import DatabaseConnection
from models.cart import parse_line_key
from models.order import CustomerInfo, Order

logger = structlog.get_logger(__name__)


def parse_quantity(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(['quantity'], f"Invalid quantity: {value!r}") from None


class SessionRegistry:
    """One OrderingSession per signed-in user or guest client, dropped on logout"""

    def __init__(self, db_connection: DatabaseConnection, settings: Settings):
        self.db = db_connection
        self.settings = settings
        self._sessions: Dict[str, OrderingSession] = {}
        self._lock = threading.Lock()

    @staticmethod
    def session_key(user_id: Optional[str], role: Optional[str], client_id: Optional[str] = None) -> str:
        actor = make_actor(user_id, role)
        # 비로그인 사용자는 클라이언트별로 장바구니를 따로 가짐
        if actor.user_id is None:
            return f"guest:{client_id}:{actor.role.value}"
        return f"{actor.user_id}:{actor.role.value}"

    def get(self, user_id: Optional[str], role: Optional[str],
            client_id: Optional[str] = None) -> OrderingSession:
        actor = make_actor(user_id, role)
        key = self.session_key(user_id, role, client_id)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = OrderingSession(self.db, actor, self.settings)
                self._sessions[key] = session
            return session

    def close(self, user_id: Optional[str], role: Optional[str],
              client_id: Optional[str] = None) -> bool:
        with self._lock:
            session = self._sessions.pop(self.session_key(user_id, role, client_id), None)
        if session is None:
            return False
        session.close()
        return True


def create_app(settings: Optional[Settings] = None) -> Flask:
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.secret_key = settings.secret_key
    registry = SessionRegistry(DatabaseConnection(settings.db_path), settings)
    app.extensions["ordering_sessions"] = registry

    def client_id() -> str:
        # Get or create client ID (비로그인 장바구니 구분용)
        if 'client_id' not in client_session:
            client_session['client_id'] = str(uuid.uuid4())
        return client_session['client_id']

    def current_session() -> OrderingSession:
        # 인증은 외부 서비스가 담당, 여기서는 전달된 사용자 정보만 사용
        return registry.get(request.headers.get("X-User-Id"), request.headers.get("X-User-Role"),
                            client_id())

    def require_staff(session: OrderingSession) -> None:
        if not session.actor.is_staff:
            raise PolicyDenied("staff access required")

    def visible_order(session: OrderingSession, order_id: str) -> Order:
        # 다른 사용자의 주문은 존재하지 않는 것으로 응답
        order = session.get_order(order_id)
        if not session.order_service.can_view(order, session.actor):
            raise OrderNotFound(order_id)
        return order

    def mutation_response(result):
        # 저장 실패 시 메모리 변경을 되돌리고 오류 반환
        if not result.confirmed:
            result.rollback()
            return jsonify(result.to_dict()), 502
        return jsonify(result.to_dict())

    @app.errorhandler(OrderingError)
    def handle_ordering_error(error: OrderingError):
        body = {"error": str(error)}
        status = 400
        if isinstance(error, ValidationError):
            body["missing_fields"] = error.missing_fields
        elif isinstance(error, PolicyDenied):
            status = 403
        elif isinstance(error, OrderNotFound):
            status = 404
        elif isinstance(error, RemoteError):
            status = 502
            logger.error("store_unavailable", path=request.path, error=str(error))
        return jsonify(body), status

    @app.route('/health')
    def health():
        """Health check endpoint"""
        return jsonify({'status': 'ok', 'message': 'Ordering service is running!'})

    @app.route('/api/menu')
    def menu():
        return jsonify({'items': current_session().get_menu()})

    @app.route('/api/cart', methods=['GET'])
    def get_cart():
        return jsonify(current_session().get_cart_details())

    @app.route('/api/cart', methods=['DELETE'])
    def clear_cart():
        return mutation_response(current_session().clear_cart())

    @app.route('/api/cart/items', methods=['POST'])
    def add_cart_item():
        data = request.get_json(silent=True) or {}
        if not data.get('food_item_id'):
            raise ValidationError(['food_item_id'])
        result = current_session().add_to_cart(
            data['food_item_id'],
            size_id=data.get('size_id'),
            quantity=parse_quantity(data.get('quantity', 1)),
            note=data.get('note')
        )
        return mutation_response(result)

    @app.route('/api/cart/items/<key>', methods=['PATCH'])
    def update_cart_item(key):
        data = request.get_json(silent=True) or {}
        if 'quantity' not in data:
            raise ValidationError(['quantity'])
        return mutation_response(
            current_session().update_cart_item(parse_line_key(key), parse_quantity(data['quantity']))
        )

    @app.route('/api/cart/items/<key>', methods=['DELETE'])
    def remove_cart_item(key):
        return mutation_response(current_session().remove_from_cart(parse_line_key(key)))

    @app.route('/api/orders', methods=['POST'])
    def place_order():
        data = request.get_json(silent=True) or {}
        customer = CustomerInfo(
            name=data.get('name', ''),
            phone=data.get('phone', ''),
            email=data.get('email', ''),
            address=data.get('address', '')
        )
        order = current_session().place_order(
            customer,
            order_type=data.get('order_type', 'pickup'),
            payment_method=data.get('payment_method', 'cash'),
            notes=data.get('notes')
        )
        return jsonify(order.to_dict()), 201

    @app.route('/api/orders', methods=['GET'])
    def my_orders():
        return jsonify({'orders': [o.to_dict() for o in current_session().my_orders()]})

    @app.route('/api/orders/<order_id>', methods=['GET'])
    def get_order(order_id):
        session = current_session()
        order = visible_order(session, order_id)
        body = order.to_dict()
        body['next_action'] = session.order_service.next_action(order)
        body['history'] = [h.to_dict() for h in session.order_service.get_status_history(order_id)]
        return jsonify(body)

    @app.route('/api/orders/<order_id>/advance', methods=['POST'])
    def advance_order(order_id):
        session = current_session()
        require_staff(session)
        order = session.advance_order(order_id)
        if order is None:
            return jsonify({'error': 'Order has no further status'}), 409
        return jsonify(order.to_dict())

    @app.route('/api/orders/<order_id>/status', methods=['POST'])
    def set_order_status(order_id):
        session = current_session()
        require_staff(session)
        data = request.get_json(silent=True) or {}
        if not data.get('status'):
            raise ValidationError(['status'])
        return jsonify(session.set_order_status(order_id, data['status'], data.get('notes')).to_dict())

    @app.route('/api/orders/<order_id>/cancel', methods=['GET'])
    def cancellation_info(order_id):
        session = current_session()
        visible_order(session, order_id)
        return jsonify(session.cancellation_info(order_id))

    @app.route('/api/orders/<order_id>/cancel', methods=['POST'])
    def cancel_order(order_id):
        data = request.get_json(silent=True) or {}
        order = current_session().cancel_order(order_id, data.get('reason', ''))
        return jsonify(order.to_dict())

    @app.route('/api/orders/<order_id>/cancellation', methods=['GET'])
    def get_cancellation(order_id):
        session = current_session()
        visible_order(session, order_id)
        record = session.order_service.get_cancellation(order_id)
        if record is None:
            raise OrderNotFound(order_id)
        return jsonify(record.to_dict())

    @app.route('/api/admin/orders')
    def admin_orders():
        session = current_session()
        require_staff(session)
        orders = session.all_orders(request.args.get('source'), request.args.get('status'))
        return jsonify({'orders': [o.to_dict() for o in orders]})

    @app.route('/api/admin/stats/today')
    def today_stats():
        session = current_session()
        require_staff(session)
        return jsonify(session.today_stats())

    @app.route('/api/logout', methods=['POST'])
    def logout():
        closed = registry.close(request.headers.get("X-User-Id"), request.headers.get("X-User-Role"),
                                client_session.get('client_id'))
        client_session.clear()
        return jsonify({'message': 'Session closed.' if closed else 'No active session.'})

    return app


if __name__ == '__main__':
    settings = Settings.from_env()
    app = create_app(settings)

    print("=== Restaurant Ordering Server ===")
    print(f"Starting server on http://localhost:{settings.port}")
    print("Press Ctrl+C to stop")

    app.run(
        host='0.0.0.0',
        port=settings.port,
        debug=settings.debug
    )
