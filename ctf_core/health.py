"""
Health check views for monitoring.
"""
from django.conf import settings
from django.http import JsonResponse
from django.db import connection
from django.core.cache import cache
import redis
from channels.layers import get_channel_layer
from nft_rewards.blockchain import get_contract


def health_check(request):
    """
    Simple health check endpoint.
    Returns 200 if the service is up.
    """
    return JsonResponse({
        'status': 'healthy',
        'service': 'ctnft-backend'
    })


def detailed_health_check(request):
    """
    Detailed health check with database, cache, redis, channels and chain status.
    Redis and the chain are reported as not configured when their settings are empty.
    """
    health_status = {
        'status': 'healthy',
        'checks': {}
    }

    # Check database
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
        health_status['checks']['database'] = 'healthy'
    except Exception as e:
        health_status['checks']['database'] = f'unhealthy: {str(e)}'
        health_status['status'] = 'degraded'

    # Check cache
    try:
        cache.set('health_check', 'ok', 10)
        if cache.get('health_check') == 'ok':
            health_status['checks']['cache'] = 'healthy'
        else:
            health_status['checks']['cache'] = 'unhealthy: cache test failed'
            health_status['status'] = 'degraded'
    except Exception as e:
        health_status['checks']['cache'] = f'unhealthy: {str(e)}'
        health_status['status'] = 'degraded'

    # Check Redis directly
    if settings.REDIS_URL:
        try:
            redis.from_url(settings.REDIS_URL).ping()
            health_status['checks']['redis'] = 'healthy'
        except Exception as e:
            health_status['checks']['redis'] = f'unhealthy: {str(e)}'
            health_status['status'] = 'degraded'
    else:
        health_status['checks']['redis'] = 'not configured'

    # Check Channels layer
    try:
        if get_channel_layer():
            health_status['checks']['websockets'] = 'healthy'
        else:
            health_status['checks']['websockets'] = 'unhealthy: no channel layer'
            health_status['status'] = 'degraded'
    except Exception as e:
        health_status['checks']['websockets'] = f'unhealthy: {str(e)}'
        health_status['status'] = 'degraded'

    # Check the reward contract's RPC endpoint
    contract = get_contract()
    if contract is None:
        health_status['checks']['chain'] = 'not configured'
    elif contract.is_connected():
        health_status['checks']['chain'] = 'healthy'
    else:
        health_status['checks']['chain'] = f'unhealthy: cannot reach {settings.WEB3_PROVIDER_URL}'
        health_status['status'] = 'degraded'

    status_code = 200 if health_status['status'] == 'healthy' else 503
    return JsonResponse(health_status, status=status_code)
