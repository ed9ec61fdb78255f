import pytest

from patota.utils.exceptions import Conflict, Forbidden, NotFoundError, ValidationError

from conftest import OWNER_DISCORD_ID


async def test_register_member_is_idempotent(member_ops):
    first = await member_ops.register_member(4242, "  Joao   Silva ")
    again = await member_ops.register_member(4242, "Someone Else")

    assert first.id == again.id
    assert again.name == "Joao Silva"
    assert again.is_active is True


async def test_register_member_requires_name(member_ops):
    with pytest.raises(ValidationError):
        await member_ops.register_member(4243, "   ")


async def test_add_member_requires_admin(member_ops, make_member, as_actor):
    regular = await make_member(name="Regular")
    with pytest.raises(Forbidden) as excinfo:
        await member_ops.add_member(as_actor(regular), "New Guy", "new@club.com")
    assert "admins" in excinfo.value.user_message


async def test_add_member_normalizes_email_and_rejects_duplicates(member_ops, admin):
    member = await member_ops.add_member(admin, "Maria", "  Maria@Club.COM ")
    assert member.email == "maria@club.com"
    assert member.discord_id is None

    with pytest.raises(Conflict):
        await member_ops.add_member(admin, "Maria Two", "maria@club.com")


@pytest.mark.parametrize("email", ["no-at-sign", "@club.com", "maria@localhost", ""])
async def test_add_member_rejects_bad_email(member_ops, admin, email):
    with pytest.raises(ValidationError):
        await member_ops.add_member(admin, "Maria", email)


async def test_deactivated_members_drop_out_of_active_list(member_ops, admin, make_member):
    keep = await make_member(name="Keep")
    leave = await make_member(name="Leave")

    updated = await member_ops.set_member_active(admin, leave.id, False)
    assert updated.is_active is False

    active_ids = {m.id for m in await member_ops.list_members(active_only=True)}
    all_ids = {m.id for m in await member_ops.list_members()}
    assert keep.id in active_ids
    assert leave.id not in active_ids
    assert leave.id in all_ids


async def test_set_member_active_unknown_member(member_ops, admin):
    with pytest.raises(NotFoundError):
        await member_ops.set_member_active(admin, 9999, False)


async def test_resolve_actor_for_owner_without_membership(member_ops):
    actor = await member_ops.resolve_actor(OWNER_DISCORD_ID)
    assert actor.is_admin is True
    assert actor.member_id is None


async def test_resolve_actor_unknown_identity(member_ops):
    with pytest.raises(NotFoundError) as excinfo:
        await member_ops.resolve_actor(123456789)
    assert "/join" in excinfo.value.user_message


async def test_resolve_actor_reflects_admin_flag(member_ops, admin, make_member):
    member = await make_member(name="Soon Admin", discord_id=7777)
    assert (await member_ops.resolve_actor(7777)).is_admin is False

    await member_ops.set_member_admin(admin, member.id, True)
    assert (await member_ops.resolve_actor(7777)).is_admin is True

    await member_ops.set_member_active(admin, member.id, False)
    assert (await member_ops.resolve_actor(7777)).is_admin is False


async def test_set_member_admin_requires_admin(member_ops, make_member, as_actor):
    regular = await make_member()
    other = await make_member()
    with pytest.raises(Forbidden):
        await member_ops.set_member_admin(as_actor(regular), other.id, True)
