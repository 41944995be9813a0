"""
Events app: the slice of event management that team messaging depends on.

This app handles:
- Events with a managing user and an accepted volunteer team
- Membership lookup (manager plus team) for event chat broadcasts
- Accepting volunteers into a team

Related apps:
    - authentication: User model for managers and volunteers
    - messaging: Listens to team_changed to keep event chat groups in sync

Usage:
    from events.services import EventMembershipService

    membership = EventMembershipService.get_membership(event_id)
    if membership.is_member(user.id):
        ...
"""
