"""Test the state mirror's mutators and snapshots."""

import pytest

from fchat.state import StateStore


@pytest.fixture
def store():
    return StateStore("Me")


class TestCharacters:
    def test_lis_batches_are_additive(self, store):
        store.add_characters([["Alice", "Female", "online", ""]])
        store.add_characters([["Bob", "Male", "looking", "Say hi"]])

        chars = store.characters()
        assert set(chars) == {"Alice", "Bob"}
        assert chars["Bob"].status_message == "Say hi"
        assert chars["Bob"].typing_status == "clear"

    def test_lis_short_rows_get_defaults(self, store):
        store.add_characters([["Carol"]])
        assert store.character("Carol").status == "online"

    def test_online_then_offline(self, store):
        store.character_online("Bob", "Male", "online")
        assert "Bob" in store.characters()

        assert store.character_offline("Bob") is True
        assert "Bob" not in store.characters()

    def test_offline_unknown_is_noop(self, store):
        store.character_online("Bob")
        assert store.character_offline("Nobody") is False
        assert set(store.characters()) == {"Bob"}

    def test_online_twice_does_not_duplicate(self, store):
        store.character_online("Bob", "Male", "online")
        store.character_online("Bob", "Male", "online")
        assert list(store.characters()) == ["Bob"]

    def test_status_update(self, store):
        store.character_online("Bob")
        store.set_status("Bob", "busy", "brb")

        bob = store.character("Bob")
        assert (bob.status, bob.status_message) == ("busy", "brb")

    def test_status_for_unknown_character_does_not_create(self, store):
        store.set_status("Ghost", "busy", "")
        assert store.character("Ghost") is None

    def test_typing_for_unknown_character_does_not_create(self, store):
        store.set_typing("Ghost", "typing")
        assert store.character("Ghost") is None

    def test_typing_update(self, store):
        store.character_online("Bob")
        store.set_typing("Bob", "paused")
        assert store.character("Bob").typing_status == "paused"

    def test_unknown_typing_status_ignored(self, store):
        store.character_online("Bob")
        store.set_typing("Bob", "dancing")
        assert store.character("Bob").typing_status == "clear"


class TestChannels:
    def test_own_join_creates_channel_keyed_lowercase(self, store):
        store.channel_joined("Frontpage", "Me", "Front Page")

        assert list(store.channels()) == ["frontpage"]
        chan = store.channel("frontpage")
        assert chan.name == "Frontpage"
        assert chan.title == "Front Page"

    def test_lookup_is_case_insensitive(self, store):
        store.channel_joined("Frontpage", "Me")
        assert store.channel("FRONTPAGE") == store.channel("frontpage")

    def test_other_join_adds_member_once(self, store):
        store.channel_joined("Frontpage", "Me")

        store.channel_joined("frontpage", "Bob")
        store.channel_joined("FRONTPAGE", "Bob")

        assert store.channel("Frontpage").members == {"Bob"}

    def test_other_join_on_unknown_channel_is_noop(self, store):
        store.channel_joined("Elsewhere", "Bob")
        assert store.channel("Elsewhere") is None

    def test_other_leave_removes_member(self, store):
        store.channel_joined("Frontpage", "Me")
        store.channel_joined("Frontpage", "Bob")

        store.channel_left("Frontpage", "Bob")

        assert store.channel("Frontpage").members == set()

    def test_own_leave_destroys_channel(self, store):
        store.channel_joined("Frontpage", "Me")
        store.channel_left("FrontPage", "Me")
        assert store.channel("Frontpage") is None

    def test_initial_channel_data_replaces_members(self, store):
        store.channel_joined("Frontpage", "Me")
        store.channel_joined("Frontpage", "Stale")

        store.initial_channel_data("Frontpage", ["Me", "Bob"], "chat")

        chan = store.channel("Frontpage")
        assert chan.members == {"Me", "Bob"}
        assert chan.mode == "chat"

    def test_initial_channel_data_creates_missing_channel(self, store):
        store.initial_channel_data("ADH-1234", ["Me"], "both")
        assert store.channel("adh-1234").members == {"Me"}

    def test_description_and_mode(self, store):
        store.channel_joined("Frontpage", "Me")
        store.set_description("Frontpage", "Welcome")
        store.set_mode("Frontpage", "ads")

        chan = store.channel("Frontpage")
        assert (chan.description, chan.mode) == ("Welcome", "ads")

    def test_offline_keeps_channel_members_by_default(self, store):
        store.channel_joined("Frontpage", "Me")
        store.channel_joined("Frontpage", "Bob")
        store.character_online("Bob")

        store.character_offline("Bob")

        assert "Bob" in store.channel("Frontpage").members

    def test_offline_prunes_channel_members_when_asked(self, store):
        store.channel_joined("Frontpage", "Me")
        store.channel_joined("Frontpage", "Bob")
        store.channel_joined("Other", "Me")
        store.channel_joined("Other", "Bob")

        store.character_offline("Bob", prune_channels=True)

        assert all("Bob" not in c.members for c in store.channels().values())


class TestChanops:
    def test_first_entry_is_owner_and_chanop(self, store):
        store.channel_joined("Room", "Me")

        store.set_chanops("Room", ["Owner", "OpA", "OpB"])

        chan = store.channel("Room")
        assert chan.owner == "Owner"
        assert chan.chanops == ["Owner", "OpA", "OpB"]

    def test_empty_first_entry_is_dropped(self, store):
        store.channel_joined("Room", "Me")

        store.set_chanops("Room", ["", "OpA", "OpB"])

        chan = store.channel("Room")
        assert chan.chanops == ["OpA", "OpB"]
        assert chan.owner == "OpA"

    def test_empty_oplist_is_noop(self, store):
        store.channel_joined("Room", "Me")
        store.set_chanops("Room", ["Owner"])

        store.set_chanops("Room", [])

        assert store.channel("Room").chanops == ["Owner"]

    def test_add_and_remove_chanop(self, store):
        store.channel_joined("Room", "Me")
        store.add_chanop("Room", "OpA")
        store.add_chanop("room", "OpA")
        assert store.channel("Room").chanops == ["OpA"]

        store.remove_chanop("ROOM", "OpA")
        store.remove_chanop("Room", "OpA")
        assert store.channel("Room").chanops == []

    def test_set_owner(self, store):
        store.channel_joined("Room", "Me")
        store.set_owner("Room", "NewOwner")
        assert store.channel("Room").owner == "NewOwner"


class TestNameSets:
    def test_chatops_replace_and_increment(self, store):
        store.set_chatops(["A", "B"])
        store.add_chatop("C")
        store.add_chatop("C")
        store.remove_chatop("A")
        store.remove_chatop("A")
        assert store.chatops() == frozenset({"B", "C"})

    def test_ignore_list(self, store):
        store.set_ignore_list(["Troll"])
        store.add_ignore("Spammer")
        store.remove_ignore("Troll")
        assert store.ignore_list() == frozenset({"Spammer"})

    def test_friends(self, store):
        store.set_friends(["A"])
        store.add_friend("B")
        store.remove_friend("A")
        assert store.friends() == frozenset({"B"})


class TestSnapshots:
    def test_channel_snapshot_is_detached(self, store):
        store.channel_joined("Room", "Me")
        snapshot = store.channel("Room")

        snapshot.members.add("Intruder")
        snapshot.chanops.append("Intruder")

        assert store.channel("Room").members == set()
        assert store.channel("Room").chanops == []

    def test_character_snapshot_is_detached(self, store):
        store.character_online("Bob")
        store.character("Bob").status = "busy"
        assert store.character("Bob").status == "online"

    def test_views_are_read_only(self, store):
        store.set_variable("chat_max", 4096)
        with pytest.raises(TypeError):
            store.server_variables()["chat_max"] = 1  # type: ignore[index]
        with pytest.raises(TypeError):
            store.characters()["X"] = None  # type: ignore[index]


class TestVariablesAndReset:
    def test_variables_overwrite(self, store):
        store.set_variable("msg_flood", 0.5)
        store.set_variable("msg_flood", 2)
        assert store.server_variables() == {"msg_flood": 2}

    def test_reset_clears_everything(self, store):
        store.character_online("Bob")
        store.channel_joined("Room", "Me")
        store.set_chatops(["A"])
        store.set_ignore_list(["B"])
        store.set_friends(["C"])
        store.set_variable("x", 1)

        store.reset("Other")

        assert store.own_character == "Other"
        assert not store.characters()
        assert not store.channels()
        assert not store.chatops()
        assert not store.ignore_list()
        assert not store.friends()
        assert not store.server_variables()


class TestProfiles:
    def test_start_info_end_assembles_profile(self, store):
        store.profile_start("Bob", "Profile of Bob")
        store.profile_info("Bob", "Age", "30")
        store.profile_info("Bob", "Species", "Fox")

        profile = store.profile_end("Bob", "End of profile")

        assert profile.character == "Bob"
        assert profile.start_message == "Profile of Bob"
        assert profile.end_message == "End of profile"
        assert dict(profile.fields) == {"Age": "30", "Species": "Fox"}

    def test_info_without_start_is_ignored(self, store):
        store.profile_info("Bob", "Age", "30")
        assert store.profile_end("Bob") is None
