from __future__ import annotations

from typing import List, Tuple

from songwright.app.models import DEFAULT_THINKING_MESSAGE, GenerationState
from songwright.app.state import (
    Action,
    AddCoverImageUrl,
    GenerationStore,
    Reset,
    SetStyle,
    SetTopic,
    reduce,
)


def test_reduce_is_pure() -> None:
    original = GenerationState(topic="old")
    updated = reduce(original, SetTopic("new"))
    assert original.topic == "old"
    assert updated.topic == "new"


def test_style_change_clears_instruments() -> None:
    store = GenerationStore()
    store.set_style("Jazz")
    store.set_instruments(["Piano", "Drums"])
    assert store.state.instruments == ("Piano", "Drums")

    store.set_style("Blues")
    assert store.state.style == "Blues"
    assert store.state.instruments == ()

    store.set_instruments(["Harmonica"])
    store.set_style("Blues")
    assert store.state.instruments == ()


def test_adding_cover_selects_it() -> None:
    state = GenerationState()
    state = reduce(state, AddCoverImageUrl("blob://1"))
    assert state.selected_cover_image_index == 0
    state = reduce(state, AddCoverImageUrl("blob://2"))
    assert state.cover_image_urls == ("blob://1", "blob://2")
    assert state.selected_cover_image_index == 1
    assert state.selected_cover_image_url == "blob://2"


def test_selected_cover_url_out_of_range() -> None:
    state = GenerationState(cover_image_urls=["a"], selected_cover_image_index=3)
    assert state.selected_cover_image_url is None
    assert GenerationState().selected_cover_image_url is None


def test_subscribers_receive_state_and_action() -> None:
    store = GenerationStore()
    seen: List[Tuple[GenerationState, Action]] = []
    unsubscribe = store.subscribe(lambda state, action: seen.append((state, action)))

    store.set_topic("rain")
    store.set_style("Jazz")
    assert [state.topic for state, _ in seen] == ["rain", "rain"]
    assert isinstance(seen[0][1], SetTopic)
    assert isinstance(seen[1][1], SetStyle)

    unsubscribe()
    store.set_title("ignored")
    assert len(seen) == 2


def test_reset_restores_defaults() -> None:
    store = GenerationStore(GenerationState(topic="rain", title="Rain", lyrics="la"))
    actions: List[Action] = []
    store.subscribe(lambda _state, action: actions.append(action))

    state = store.reset()
    assert state == GenerationState()
    assert isinstance(actions[-1], Reset)


def test_is_loading_updates_thinking_message() -> None:
    store = GenerationStore(default_thinking_message="Working...")
    assert store.is_loading is False

    store.set_is_loading(True, "Expanding with AI...")
    assert store.is_loading is True
    assert store.state.thinking_message == "Expanding with AI..."

    store.set_is_loading(True)
    assert store.state.thinking_message == "Working..."

    store.set_is_loading(False)
    assert store.is_loading is False
    assert store.state.thinking_message == "Working..."


def test_is_loading_is_not_part_of_document() -> None:
    store = GenerationStore()
    store.set_is_loading(True)
    assert "isLoading" not in store.state.to_storage()
    assert store.state.thinking_message == DEFAULT_THINKING_MESSAGE


def test_hydrate_replaces_document() -> None:
    store = GenerationStore()
    restored = GenerationState(topic="restored", style="Pop")
    assert store.hydrate(restored) == restored


def test_storage_uses_camel_case_keys() -> None:
    payload = GenerationState(expanded_topic="x", cover_image_urls=["u"]).to_storage()
    assert payload["expandedTopic"] == "x"
    assert payload["coverImageUrls"] == ["u"]
    assert payload["selectedCoverImageIndex"] is None


def test_document_sequences_are_immutable() -> None:
    store = GenerationStore()
    store.set_instruments(["Piano"])
    before = store.state
    store.add_cover_image_url("blob://1")

    assert isinstance(store.state.instruments, tuple)
    assert isinstance(store.state.cover_image_urls, tuple)
    assert before.cover_image_urls == ()
    assert not hasattr(store.state.instruments, "append")
