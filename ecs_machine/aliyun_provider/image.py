# pyright: reportOptionalOperand=false

from typing import List
from alibabacloud_ecs20140526.models import DescribeImagesRequest, DescribeImagesResponseBodyImagesImage
from alibabacloud_ecs20140526.client import Client

from ..create_instance.types import ImageInfo
from .api_error import api_call


def as_image_info(rep: DescribeImagesResponseBodyImagesImage):
    assert type(rep.image_id) is str

    return ImageInfo(image_id=rep.image_id, image_name=rep.image_name or "")


def get_images_in_region(client: Client, region_id: str, owner_alias: str) -> List[ImageInfo]:
    result = []

    page_number = 1
    while True:
        req = DescribeImagesRequest(region_id=region_id, image_owner_alias=owner_alias, page_number=page_number, page_size=50)
        with api_call("DescribeImages"):
            rep = client.describe_images(req)

        result.extend([as_image_info(image) for image in rep.body.images.image])
        if rep.body.total_count <= page_number * 50:
            break
        page_number += 1

    return result
