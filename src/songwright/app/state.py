"""Generation state store.

Transitions are plain action objects applied by :func:`reduce`; the store
owns the current document, hands it to subscribers after every transition
and tracks the advisory busy flag that lives outside the document.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .models import DEFAULT_THINKING_MESSAGE, GenerationState


class Action:
    """Base class for state transitions."""

    def apply(self, state: GenerationState) -> GenerationState:
        raise NotImplementedError


@dataclass(frozen=True)
class SetTopic(Action):
    text: str

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"topic": self.text})


@dataclass(frozen=True)
class SetExpandedTopic(Action):
    text: str

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"expanded_topic": self.text})


@dataclass(frozen=True)
class SetStyle(Action):
    style: Optional[str]

    def apply(self, state: GenerationState) -> GenerationState:
        # instruments only make sense for the style they were picked from
        return state.model_copy(update={"style": self.style, "instruments": ()})


@dataclass(frozen=True)
class SetInstruments(Action):
    instruments: Sequence[str]

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"instruments": tuple(self.instruments)})


@dataclass(frozen=True)
class SetTitle(Action):
    text: str

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"title": self.text})


@dataclass(frozen=True)
class SetLyrics(Action):
    text: str

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"lyrics": self.text})


@dataclass(frozen=True)
class AddCoverImagePrompt(Action):
    prompt: str

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(
            update={"cover_image_prompts": (*state.cover_image_prompts, self.prompt)}
        )


@dataclass(frozen=True)
class AddCoverImageUrl(Action):
    url: str

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(
            update={
                "cover_image_urls": (*state.cover_image_urls, self.url),
                "selected_cover_image_index": len(state.cover_image_urls),
            }
        )


@dataclass(frozen=True)
class SetCoverImageUrls(Action):
    urls: Sequence[str]

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"cover_image_urls": tuple(self.urls)})


@dataclass(frozen=True)
class SetCoverImagePrompts(Action):
    prompts: Sequence[str]

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"cover_image_prompts": tuple(self.prompts)})


@dataclass(frozen=True)
class SetSelectedCoverImageIndex(Action):
    index: Optional[int]

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"selected_cover_image_index": self.index})


@dataclass(frozen=True)
class SetThinkingMessage(Action):
    message: str

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"thinking_message": self.message})


@dataclass(frozen=True)
class SetReportIntroduction(Action):
    text: str

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"report_introduction": self.text})


@dataclass(frozen=True)
class SetReportLyricsSnapshot(Action):
    lyrics: str

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"report_lyrics_snapshot": self.lyrics})


@dataclass(frozen=True)
class SetTranslatedLyrics(Action):
    text: str

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"translated_lyrics": self.text})


@dataclass(frozen=True)
class SetLanguage(Action):
    language: str

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"language": self.language})


@dataclass(frozen=True)
class SetLanguage2(Action):
    language: str

    def apply(self, state: GenerationState) -> GenerationState:
        return state.model_copy(update={"language2": self.language})


@dataclass(frozen=True)
class Hydrate(Action):
    state: GenerationState

    def apply(self, state: GenerationState) -> GenerationState:
        return self.state


@dataclass(frozen=True)
class Reset(Action):
    def apply(self, state: GenerationState) -> GenerationState:
        return GenerationState()


def reduce(state: GenerationState, action: Action) -> GenerationState:
    return action.apply(state)


Listener = Callable[[GenerationState, Action], None]


@dataclass
class _Subscription:
    listener: Listener
    active: bool = True


class GenerationStore:
    """Owns the generation document for one session."""

    def __init__(
        self,
        initial: Optional[GenerationState] = None,
        *,
        default_thinking_message: str = DEFAULT_THINKING_MESSAGE,
    ) -> None:
        self._state = initial if initial is not None else GenerationState()
        self._is_loading = False
        self._default_thinking_message = default_thinking_message
        self._subscriptions: List[_Subscription] = []

    @property
    def state(self) -> GenerationState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        subscription = _Subscription(listener)
        self._subscriptions.append(subscription)

        def _unsubscribe() -> None:
            subscription.active = False
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return _unsubscribe

    def dispatch(self, action: Action) -> GenerationState:
        self._state = reduce(self._state, action)
        for subscription in list(self._subscriptions):
            if subscription.active:
                subscription.listener(self._state, action)
        return self._state

    def hydrate(self, state: GenerationState) -> GenerationState:
        return self.dispatch(Hydrate(state))

    def set_topic(self, text: str) -> GenerationState:
        return self.dispatch(SetTopic(text))

    def set_expanded_topic(self, text: str) -> GenerationState:
        return self.dispatch(SetExpandedTopic(text))

    def set_style(self, style: Optional[str]) -> GenerationState:
        return self.dispatch(SetStyle(style))

    def set_instruments(self, instruments: Sequence[str]) -> GenerationState:
        return self.dispatch(SetInstruments(tuple(instruments)))

    def set_title(self, text: str) -> GenerationState:
        return self.dispatch(SetTitle(text))

    def set_lyrics(self, text: str) -> GenerationState:
        return self.dispatch(SetLyrics(text))

    def add_cover_image_prompt(self, prompt: str) -> GenerationState:
        return self.dispatch(AddCoverImagePrompt(prompt))

    def add_cover_image_url(self, url: str) -> GenerationState:
        return self.dispatch(AddCoverImageUrl(url))

    def set_cover_image_urls(self, urls: Sequence[str]) -> GenerationState:
        return self.dispatch(SetCoverImageUrls(tuple(urls)))

    def set_cover_image_prompts(self, prompts: Sequence[str]) -> GenerationState:
        return self.dispatch(SetCoverImagePrompts(tuple(prompts)))

    def set_selected_cover_image_index(self, index: Optional[int]) -> GenerationState:
        return self.dispatch(SetSelectedCoverImageIndex(index))

    def set_thinking_message(self, message: str) -> GenerationState:
        return self.dispatch(SetThinkingMessage(message))

    def set_report_introduction(self, text: str) -> GenerationState:
        return self.dispatch(SetReportIntroduction(text))

    def set_report_lyrics_snapshot(self, lyrics: str) -> GenerationState:
        return self.dispatch(SetReportLyricsSnapshot(lyrics))

    def set_translated_lyrics(self, text: str) -> GenerationState:
        return self.dispatch(SetTranslatedLyrics(text))

    def set_language(self, language: str) -> GenerationState:
        return self.dispatch(SetLanguage(language))

    def set_language2(self, language: str) -> GenerationState:
        return self.dispatch(SetLanguage2(language))

    def reset(self) -> GenerationState:
        return self.dispatch(Reset())

    def set_is_loading(self, loading: bool, message: Optional[str] = None) -> None:
        self._is_loading = loading
        if loading:
            self.set_thinking_message(message or self._default_thinking_message)
