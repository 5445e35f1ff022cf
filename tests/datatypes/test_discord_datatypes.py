import pytest

from cardcord.datatypes.discord_datatypes import GuildID, UserID


class DummyObj:
    def __init__(self, id_val):
        self.id = id_val


def test_userid_from_int_and_str_and_equality_and_hash():
    u1 = UserID(12345)
    assert int(u1) == 12345
    assert u1.to_int() == 12345
    assert str(u1) == "12345"

    u2 = UserID("12345")
    assert u1 == u2

    u3 = UserID.from_user(DummyObj(111))  # type: ignore[arg-type]
    assert int(u3) == 111

    # equality with raw types
    assert u3 == 111
    assert u3 == "111"

    # hashing and set membership
    assert len({u1, u2, u3}) == 2


@pytest.mark.parametrize("value", [[], 1.5, True, "abc"])
def test_userid_invalid(value):
    with pytest.raises(ValueError):
        UserID(value)  # type: ignore[arg-type]


def test_guildid_behaviour():
    gid = GuildID(" 222 ")
    assert int(gid) == 222
    assert gid == GuildID(222)
    assert GuildID.from_guild(DummyObj(222)) == gid  # type: ignore[arg-type]
    assert repr(gid) == "GuildID('222')"


def test_wrappers_of_different_kinds_are_not_equal():
    assert UserID(5) != GuildID(5)
    assert UserID(UserID(7)) == UserID(7)
