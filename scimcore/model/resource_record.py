from .base import db


class ResourceRecord(db.Model):
    __tablename__ = "scim_resource"

    id = db.Column(db.String(36), primary_key=True)
    resource_type = db.Column(db.String(64), nullable=False, index=True)
    # Value of the resource type's server-unique attribute (userName, displayName)
    unique_key = db.Column(db.String(255), nullable=True)
    document = db.Column(db.JSON, nullable=False)
    created = db.Column(db.DateTime(timezone=True), nullable=False)
    last_modified = db.Column(db.DateTime(timezone=True), nullable=False)

    __table_args__ = (db.UniqueConstraint("resource_type", "unique_key"),)

    def __repr__(self):
        return f"<ResourceRecord {self.resource_type}/{self.id}>"

    @staticmethod
    def get_by_id(resource_type, id):
        return ResourceRecord.query.filter_by(resource_type=resource_type, id=id).first()

    @staticmethod
    def add(id, resource_type, document, unique_key, created, last_modified):
        record = ResourceRecord(
            id=id,
            resource_type=resource_type,
            document=document,
            unique_key=unique_key,
            created=created,
            last_modified=last_modified,
        )
        db.session.add(record)
        db.session.commit()
        return record

    def replace(self, document, unique_key, last_modified):
        self.document = document
        self.unique_key = unique_key
        self.last_modified = last_modified
        db.session.commit()

    def remove(self):
        db.session.delete(self)
        db.session.commit()
