from piecework.schemas.common import CamelModel


class JobMetadataResponse(CamelModel):
    job_number: str
    client_name: str
    title: str
    total_units: float
    category: str
    unit_price: float
