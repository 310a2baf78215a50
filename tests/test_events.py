import pytest

from recipe_genie.config import DEFAULT_CATEGORIES
from services.events import (
    ActionKind,
    Button,
    ButtonPress,
    CallbackAction,
    FreeText,
    Help,
    Start,
    decode_callback,
    decode_message,
    encode_callback,
)
from services.preferences import Diet


@pytest.mark.parametrize("button", list(Button))
def test_button_labels_decode_to_button_press(button):
    assert decode_message(button.value) == ButtonPress(button)


def test_start_and_help_commands():
    assert decode_message("/start", first_name="Ana") == Start(first_name="Ana")
    assert decode_message("/help") == Help()
    assert decode_message("/start@RecipeGenieBot", first_name="Bo") == Start(first_name="Bo")


def test_extra_commands_map_to_buttons():
    assert decode_message("/random") == ButtonPress(Button.RANDOM)
    assert decode_message("/preferences") == ButtonPress(Button.PREFERENCES)
    assert decode_message("/prefs") == ButtonPress(Button.PREFERENCES)
    assert decode_message("/categories") == ButtonPress(Button.CATEGORIES)
    assert decode_message("/about") == ButtonPress(Button.ABOUT)


@pytest.mark.parametrize("text", ["/saved", "/feedback", "/unknown thing", "/", "/ spaced"])
def test_unregistered_slash_text_is_dropped(text):
    assert decode_message(text) is None


def test_free_text_is_trimmed():
    assert decode_message("  chicken curry \n") == FreeText("chicken curry")


def test_blank_text_is_dropped():
    assert decode_message("   ") is None
    assert decode_message("") is None


def test_diet_callbacks_decode():
    assert decode_callback("set_vegetarian", DEFAULT_CATEGORIES) == CallbackAction(
        ActionKind.SET_DIET, diet=Diet.VEGETARIAN
    )
    assert decode_callback("set_vegan", DEFAULT_CATEGORIES).diet is Diet.VEGAN
    assert decode_callback("set_nonveg", DEFAULT_CATEGORIES).diet is Diet.NON_VEGETARIAN
    assert decode_callback("reset_prefs", DEFAULT_CATEGORIES) == CallbackAction(ActionKind.RESET_DIET)


def test_category_callback_validated_against_known_set():
    assert decode_callback("category_breakfast", DEFAULT_CATEGORIES) == CallbackAction(
        ActionKind.PICK_CATEGORY, category="Breakfast"
    )
    assert decode_callback("category_brunch", DEFAULT_CATEGORIES) is None
    assert decode_callback("category_", DEFAULT_CATEGORIES) is None
    assert decode_callback("garbage", DEFAULT_CATEGORIES) is None


def test_encode_uses_lowercased_category():
    action = CallbackAction(ActionKind.PICK_CATEGORY, category="Comfort Food")
    assert encode_callback(action) == "category_comfort food"
    assert decode_callback(encode_callback(action), DEFAULT_CATEGORIES) == action


def test_encode_rejects_incomplete_actions():
    with pytest.raises(ValueError):
        encode_callback(CallbackAction(ActionKind.SET_DIET, diet=Diet.UNSET))
    with pytest.raises(ValueError):
        encode_callback(CallbackAction(ActionKind.PICK_CATEGORY))
