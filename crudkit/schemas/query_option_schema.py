from marshmallow import RAISE, fields, post_load

from crudkit.extensions import ma
from crudkit.utils.model_utils.options import QueryOption


class QueryOptionSchema(ma.Schema):
    class Meta:
        unknown = RAISE

    keys = fields.List(fields.String(), load_default=list)
    selected_fields = fields.List(fields.String(), load_default=list)
    omitted_fields = fields.List(fields.String(), load_default=list)
    preloaded_fields = fields.List(fields.String(), load_default=list)
    updates_on_conflict = fields.Dict(
        keys=fields.String(),
        values=fields.List(fields.String()),
        load_default=dict,
    )
    hard_delete = fields.Boolean(load_default=False)
    include_deleted = fields.Boolean(load_default=False)

    @post_load
    def make_option(self, data, **kwargs):
        return QueryOption(**data)
