import random

import httpx
import pytest
import pytest_asyncio

from core.service import VocabularyService
from mini_app.main import app, get_service
from tests.utils import OTHER_USER, USER

WORDS = [("apple", "яблоко"), ("house", "дом"), ("cat", "кошка"), ("water", "вода")]


@pytest_asyncio.fixture
async def client(database):
    svc = VocabularyService(database, rng=random.Random(11))
    app.dependency_overrides[get_service] = lambda: svc
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def _add_all(client, user_id=USER):
    for word, translation in WORDS:
        r = await client.post(f"/api/users/{user_id}/words",
                              json={"word": word, "translation": translation})
        assert r.status_code == 201


@pytest.mark.asyncio
async def test_add_and_list_words(client):
    r = await client.post(f"/api/users/{USER}/words",
                          json={"word": " apple ", "translation": "яблоко", "context": "fruit"})
    assert r.status_code == 201
    body = r.json()
    assert body["word"] == "apple"
    assert body["interval_days"] == 1

    r = await client.get(f"/api/users/{USER}/words")
    assert [w["word"] for w in r.json()] == ["apple"]
    assert (await client.get(f"/api/users/{OTHER_USER}/words")).json() == []


@pytest.mark.asyncio
async def test_empty_translation_is_422(client):
    r = await client.post(f"/api/users/{USER}/words", json={"word": "apple", "translation": " "})
    assert r.status_code == 422
    assert r.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_quiz_with_too_few_words_is_409(client):
    r = await client.post(f"/api/users/{USER}/quiz")
    assert r.status_code == 409
    assert r.json()["error"] == "InsufficientVocabulary"


@pytest.mark.asyncio
async def test_quiz_does_not_leak_correct_index_and_scores_server_side(client):
    await _add_all(client)
    r = await client.post(f"/api/users/{USER}/quiz")
    assert r.status_code == 201
    quiz = r.json()
    assert set(quiz) == {"quiz_id", "word_id", "question", "options"}
    assert len(quiz["options"]) == 4

    r = await client.post(f"/api/users/{USER}/quiz/{quiz['quiz_id']}/answer",
                          json={"selected_index": 0, "correct_index": 0})
    assert r.status_code == 200
    answer = r.json()
    assert answer["correct"] == (answer["correct_index"] == 0)
    assert answer["correct_option"] == quiz["options"][answer["correct_index"]]
    assert answer["word"]["id"] == quiz["word_id"]

    again = await client.post(f"/api/users/{USER}/quiz/{quiz['quiz_id']}/answer",
                              json={"selected_index": 1})
    assert again.status_code == 409
    assert again.json()["error"] == "AlreadyAnswered"


@pytest.mark.asyncio
async def test_answer_validation_and_ownership(client):
    await _add_all(client)
    quiz = (await client.post(f"/api/users/{USER}/quiz")).json()
    url = f"/api/users/{USER}/quiz/{quiz['quiz_id']}/answer"
    assert (await client.post(url, json={"selected_index": -1})).status_code == 422
    assert (await client.post(url, json={"selected_index": 7})).status_code == 422
    foreign = f"/api/users/{OTHER_USER}/quiz/{quiz['quiz_id']}/answer"
    assert (await client.post(foreign, json={"selected_index": 0})).status_code == 404


@pytest.mark.asyncio
async def test_delete_word(client):
    await _add_all(client)
    words = (await client.get(f"/api/users/{USER}/words")).json()
    target = words[0]["id"]
    assert (await client.delete(f"/api/users/{OTHER_USER}/words/{target}")).status_code == 404
    assert (await client.delete(f"/api/users/{USER}/words/{target}")).status_code == 204
    assert (await client.delete(f"/api/users/{USER}/words/{target}")).status_code == 404


@pytest.mark.asyncio
async def test_due_and_stats(client):
    await _add_all(client)
    # freshly added words are due tomorrow
    assert (await client.get(f"/api/users/{USER}/due")).json() == []
    stats = (await client.get(f"/api/users/{USER}/stats")).json()
    assert stats["total_words"] == 4
    assert stats["due_words"] == 0
    assert stats["hardest"] == []
