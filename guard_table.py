class GuardConflictError(RuntimeError):
    pass


class TransitionTable:
    """Ordered ``(label, predicate, target)`` guards.

    ``predicate(state, ctx)`` is evaluated top to bottom, the first match
    gives the next state and an unmatched state holds. Tables declared
    ``exclusive`` promise that no two guards ever match with different
    targets; strict evaluation turns a broken promise into a
    ``GuardConflictError`` instead of silently taking the first row.
    """

    def __init__(self, name, rows, exclusive=False):
        self.name = name
        self.rows = list(rows)
        self.exclusive = exclusive

    def matches(self, state, ctx):
        return [(label, target) for label, predicate, target in self.rows
                if predicate(state, ctx)]

    def conflicts(self, state, ctx):
        hits = self.matches(state, ctx)
        if len({target for _, target in hits}) > 1:
            return hits
        return []

    def next_state(self, state, ctx, strict=False):
        hits = self.matches(state, ctx)
        if not hits:
            return state
        if strict and self.exclusive and len({target for _, target in hits}) > 1:
            raise GuardConflictError("{}: guards {} disagree in state {}".format(
                self.name, ", ".join(label for label, _ in hits), state))
        return hits[0][1]

    def targets(self):
        return {target for _, _, target in self.rows}
