class ListResponseMixin:
    """Wraps a service's ``list`` result in the ``ListResponse`` envelope.

    ``list`` must take ``limit`` and ``offset`` as its last two positional
    arguments.
    """

    def list_response(self, db, *args):
        items = self.list(db, *args)
        limit, offset = args[-2], args[-1]
        return {"items": items, "count": len(items), "limit": limit, "offset": offset}
