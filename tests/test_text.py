from guardbot.utils.text import split_long_message, strip_command


def test_strip_command():
    assert strip_command("!bot   what time is it", ("!bot", "@bot")) == "what time is it"
    assert strip_command("@bot hi", ("!bot", "@bot")) == "hi"
    assert strip_command("!bot", ("!bot",)) == ""
    assert strip_command("hello !bot", ("!bot",)) is None


def test_short_message_is_not_split():
    assert split_long_message("hello", max_length=10) == ["hello"]


def test_long_message_is_split_on_lines():
    text = "\n".join(["aaaa", "bbbb", "cccc"])
    assert split_long_message(text, max_length=10) == ["aaaa\nbbbb", "cccc"]
