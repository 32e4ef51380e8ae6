from menu_cache.models.tenant_menu_data import TenantMenuData
from menu_cache.models.menu_submission import MenuSubmission
