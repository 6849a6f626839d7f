from functools import wraps

DEFAULT_SETTINGS = {
    "DEFAULT_DOMAIN": "daily",
    "TIMEZONE": None,
    "ALLOW_EMPTY_DATE": False,
}


class Settings:
    """Control and configure the default behavior of timeexpr.

    * `DEFAULT_DOMAIN` label of the domain used when none is given, see
      :func:`timeexpr.domain.get_domain`.
    * `TIMEZONE` timezone name used by the system clock. ``None`` means the
      local timezone as reported by tzlocal.
    * `ALLOW_EMPTY_DATE` initial value of the "empty allowed" flag of new
      date holders.
    """

    _default = True

    def __init__(self, settings=None):
        self._settings = dict(DEFAULT_SETTINGS)
        if settings:
            self._settings.update(settings)
            self._default = False
        for key, value in self._settings.items():
            setattr(self, key, value)

    def replace(self, mod_settings=None, **kwds):
        for k, v in kwds.items():
            if v is None:
                raise TypeError('Invalid {{"{}": {}}}'.format(k, v))

        for x in self._settings:
            kwds.setdefault(x, getattr(self, x))

        if mod_settings:
            kwds.update(mod_settings)

        check_settings(kwds)
        return self.__class__(settings=kwds)

    def as_dict(self):
        return dict(self._settings)


settings = Settings()


def apply_settings(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        mod_settings = kwargs.get("settings")

        kwargs["settings"] = mod_settings or settings

        if isinstance(kwargs["settings"], dict):
            kwargs["settings"] = settings.replace(mod_settings=mod_settings)

        if not isinstance(kwargs["settings"], Settings):
            raise TypeError(
                "settings can only be either dict or instance of Settings class"
            )

        return f(*args, **kwargs)

    return wrapper


class SettingValidationError(ValueError):
    pass


def check_settings(settings):
    """
    Check if provided settings are valid, if not it raises `SettingValidationError`.
    Only checks for the modified settings.
    """
    from timeexpr.domain import catalog_labels

    settings_values = {
        "DEFAULT_DOMAIN": {
            "values": tuple(catalog_labels()),
            "type": str,
        },
        "TIMEZONE": {
            # we don't check invalid Timezones as they raise an error
            "type": (str, type(None)),
        },
        "ALLOW_EMPTY_DATE": {
            "type": bool,
        },
    }

    modified_settings = {
        k: v for k, v in settings.items() if DEFAULT_SETTINGS.get(k) != v
    }

    for setting_name, setting_value in modified_settings.items():
        if setting_name not in settings_values:
            raise SettingValidationError(
                '"{}" is not a valid setting'.format(setting_name)
            )

        setting_type = settings_values[setting_name]["type"]
        if not isinstance(setting_value, setting_type):
            raise SettingValidationError(
                '"{}" must be "{}", not "{}".'.format(
                    setting_name,
                    getattr(setting_type, "__name__", setting_type),
                    type(setting_value).__name__,
                )
            )

        setting_values = settings_values[setting_name].get("values")
        if setting_values and setting_value not in setting_values:
            raise SettingValidationError(
                '"{}" is not a valid value for "{}", it should be: "{}"'.format(
                    setting_value,
                    setting_name,
                    '" or "'.join(setting_values),
                )
            )
