"""Platform setting management — command and handler."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.settings.setting import PlatformSetting

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="PlatformSetting")
class UpdatePlatformSetting:
    """Create or change one platform setting."""

    key = String(required=True, max_length=100)
    value = String(required=True, max_length=255)
    label = String(max_length=255)


@marketplace.command_handler(part_of=PlatformSetting)
class ManageSettingsHandler:
    @handle(UpdatePlatformSetting)
    def update_setting(self, command):
        repo = current_domain.repository_for(PlatformSetting)
        try:
            setting = repo.get(command.key)
        except ObjectNotFoundError:
            setting = PlatformSetting(key=command.key, value=command.value)

        setting.change(command.value, label=command.label)
        repo.add(setting)

        logger.info("Platform setting updated", key=command.key, value=command.value)
        return setting.key
