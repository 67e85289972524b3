# tests/conftest.py
"""
Fixtures compartilhados para todos os testes do TerraUrb.

Testes de serviço usam ``ctx`` (contexto da aplicação aberto durante o teste).
Testes HTTP usam ``client`` sem contexto aberto, para que cada requisição
resolva o próprio usuário a partir do token.
"""
import pytest

from app import create_app
from extensions import db as _db
from models import Tag, User, UserRole

PASSWORD = "senha-segura-123"

SQUARE = [
    {"lat": -23.5505, "lng": -46.6333},
    {"lat": -23.5510, "lng": -46.6333},
    {"lat": -23.5510, "lng": -46.6340},
]


@pytest.fixture(scope="function")
def app():
    """Cria a aplicação Flask para testes (SQLite em memória)."""
    app = create_app("testing")
    yield app
    with app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def ctx(app):
    """Contexto da aplicação para testes de serviço."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    """Cliente de teste HTTP."""
    return app.test_client()


def make_user(nickname: str, role: UserRole = UserRole.USER, password: str = PASSWORD) -> User:
    """Cria e persiste um usuário; requer contexto da aplicação."""
    user = User(nickname=nickname, email=f"{nickname}@terraurb.com.br", role=role)
    user.set_password(password)
    _db.session.add(user)
    _db.session.commit()
    return user


def make_tag(name: str) -> Tag:
    tag = Tag(name=name)
    _db.session.add(tag)
    _db.session.commit()
    return tag


@pytest.fixture
def citizen(ctx):
    return make_user("cidada")


@pytest.fixture
def neighbour(ctx):
    return make_user("vizinho")


@pytest.fixture
def admin(ctx):
    return make_user("admin_geral", UserRole.ADMIN)


@pytest.fixture
def city_hall(ctx):
    return make_user("prefeitura", UserRole.CITY_HALL)


@pytest.fixture
def account_ids(app):
    """Cria um usuário de cada papel fora de qualquer contexto e devolve os ids."""
    with app.app_context():
        return {
            "user": make_user("cidada").id,
            "other": make_user("vizinho").id,
            "admin": make_user("admin_geral", UserRole.ADMIN).id,
            "city_hall": make_user("prefeitura", UserRole.CITY_HALL).id,
        }


def login(client, nickname: str, password: str = PASSWORD, user_agent: str | None = None):
    """Helper para fazer login e devolver a resposta."""
    headers = {"User-Agent": user_agent} if user_agent else {}
    return client.post(
        "/api/auth/login",
        json={"email": f"{nickname}@terraurb.com.br", "password": password},
        headers=headers,
    )


def auth_headers(client, nickname: str, password: str = PASSWORD) -> dict:
    """Helper que faz login e devolve o cabeçalho Authorization."""
    resp = login(client, nickname, password)
    assert resp.status_code == 200, resp.get_json()
    return {"Authorization": f"Bearer {resp.get_json()['token']}"}


def create_complaint(client, headers: dict, **overrides) -> dict:
    body = {
        "title": "Terreno abandonado",
        "description": "Mato alto e entulho acumulado",
        "location": "Rua das Flores, 120",
        "polygonCoordinates": SQUARE,
    }
    body.update(overrides)
    resp = client.post("/api/complaints", json=body, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()
