from .qibla import KAABA_LATITUDE, KAABA_LONGITUDE, distance_to_kaaba_km, get_qibla_direction
